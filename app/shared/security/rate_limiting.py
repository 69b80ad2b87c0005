"""
Rate limiting configuration and setup.

Uses slowapi to enforce a default limit on every request.
Protects against denial-of-service and resource abuse.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.config import Settings
from app.interfaces.schemas import RateLimitResponse

DEFAULT_RATE_LIMIT = "60/minute"
RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def build_limiter(app_settings: Settings) -> Limiter:
    """Create the limiter for one application instance.

    Clients are keyed by peer address. Behind a proxy, uvicorn resolves
    the peer from X-Forwarded-For when ``trust_proxy`` is on.
    """
    return Limiter(
        key_func=get_remote_address,
        default_limits=[app_settings.rate_limit_default or DEFAULT_RATE_LIMIT],
        headers_enabled=True,
        enabled=app_settings.rate_limit_enabled,
    )


def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Handle rate limit exceeded errors with a clean JSON response.

    Args:
        request: The incoming HTTP request.
        exc: The rate limit exceeded exception.

    Returns:
        A 429 JSON response carrying the rate limit headers.
    """
    response = JSONResponse(
        status_code=429,
        content=RateLimitResponse(message=RATE_LIMIT_MESSAGE).model_dump(),
    )
    return request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )


class RateLimitMiddleware:
    """Check the limiter's default limits before every HTTP request.

    Limits are keyed by request path, so no route lookup is involved and
    requests for unknown paths are counted as well.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        limiter: Limiter = request.app.state.limiter
        if not limiter.enabled:
            await self.app(scope, receive, send)
            return

        try:
            limiter._check_request_limit(request, None, True)
        except RateLimitExceeded as exc:
            response = rate_limit_exceeded_handler(request, exc)
            await response(scope, receive, send)
            return

        current_limit = getattr(request.state, "view_rate_limit", None)

        async def send_with_limit_headers(message: Message) -> None:
            if message["type"] == "http.response.start" and current_limit is not None:
                limiter._inject_asgi_headers(MutableHeaders(scope=message), current_limit)
            await send(message)

        await self.app(scope, receive, send_with_limit_headers)
