"""
CLI entry point for the HTTP server.

Usage:
    # Serve on the configured host and port (default 0.0.0.0:3012)
    python -m app.server

    # Override the port and reload on code changes
    python -m app.server --port 8000 --reload

Uvicorn handles SIGINT/SIGTERM: in-flight requests are drained, then the
application lifespan closes the database and Redis connections.
"""

import argparse
import logging

from app.core.config import settings
from app.shared.logging import configure_logging, install_excepthook

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.project_name} HTTP server")
    parser.add_argument(
        "--host", default=settings.host,
        help=f"Interface to bind (default {settings.host})",
    )
    parser.add_argument(
        "--port", type=int, default=settings.port,
        help=f"Port to listen on (default {settings.port})",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Reload the server when source files change",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(level=settings.log_level)
    install_excepthook()

    import uvicorn

    logger.info("Starting HTTP server at http://%s:%d", args.host, args.port)
    logger.info("Environment: %s", settings.environment)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        proxy_headers=settings.trust_proxy,
        forwarded_allow_ips="*" if settings.trust_proxy else None,
        timeout_graceful_shutdown=int(settings.shutdown_timeout_seconds),
        log_config=None,
    )


if __name__ == "__main__":
    main()
