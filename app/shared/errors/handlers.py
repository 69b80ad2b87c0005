"""
Centralized error handlers for FastAPI.

Every failure raised while handling a request ends up here exactly once
and is turned into a single JSON error response:

- Application errors (the taxonomy in ``exceptions``) keep their fixed
  status and client-safe message.
- Collaborator failures (database driver, ODM) are recognized by shape
  through the ``adapters`` functions, first match wins.
- Anything else becomes a 500 unless it carries its own status code.

Stack traces always go to the operator log. They only reach the client
in development mode.
"""

import logging
import re
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.interfaces.schemas import AppErrorResponse, ErrorResponse
from app.shared.errors.adapters import (
    try_as_cast_failure,
    try_as_uniqueness_failure,
    try_as_validation_failure,
)
from app.shared.errors.exceptions import AppError, BadRequestError, ErrorKind, NotFoundError

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_404 = 404
HTTP_500 = 500

FALLBACK_MESSAGE = ErrorKind.GENERIC.default_message


def _timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _request_target(request: Request) -> str:
    """Path plus query string, as the client sent it."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _describe(exc: BaseException) -> str:
    detail = getattr(exc, "detail", None)
    if isinstance(detail, str) and detail:
        return detail
    return str(exc) or FALLBACK_MESSAGE


def _own_status(exc: BaseException) -> int:
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and 100 <= status_code <= 599:
        return status_code
    return HTTP_500


class ErrorRenderer:
    """Turns failures into JSON error responses.

    Args:
        development: Expose stack traces and causes to the client.
        api_prefix: Leading path segment stripped from application error paths.
    """

    def __init__(self, development: bool = False, api_prefix: str = "/api") -> None:
        self.development = development
        prefix = api_prefix.rstrip("/")
        self._prefix_pattern = re.compile(rf"^{re.escape(prefix)}(?=/|\?|$)") if prefix else None

    def strip_api_prefix(self, target: str) -> str:
        if self._prefix_pattern is None:
            return target
        return self._prefix_pattern.sub("", target, count=1) or "/"

    def not_found(self, request: Request) -> JSONResponse:
        """Render the failure for a request no route matched."""
        error = NotFoundError(f"Route not found : {_request_target(request)}")
        return self.render(request, error)

    def render(self, request: Request, exc: BaseException) -> JSONResponse:
        """Classify a failure and build its error response."""
        logger.error(
            "(StackTrace): %s %s failed: %s",
            request.method,
            _request_target(request),
            getattr(exc, "operator_message", None) or exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )

        if isinstance(exc, AppError):
            return self._render_app_error(request, exc)
        return self._render_unclassified(request, exc)

    def _render_app_error(self, request: Request, exc: AppError) -> JSONResponse:
        status_code, message = exc.to_http()
        original_error = "Error"
        if self.development and exc.cause is not None:
            original_error = f"{type(exc.cause).__name__}: {exc.cause}"

        body = AppErrorResponse(
            message=message,
            original_error=original_error,
            status_code=status_code,
            timestamp=_timestamp(),
            path=self.strip_api_prefix(_request_target(request)),
        )
        return JSONResponse(status_code=status_code, content=body.to_wire())

    def classify(self, exc: BaseException) -> tuple[int, str]:
        """Return the status and message for a failure outside the taxonomy."""
        messages = try_as_validation_failure(exc)
        if messages is not None:
            # Validation-shaped collaborator failures stay 500, unlike BadRequestError.
            return HTTP_500, ",".join(messages) or FALLBACK_MESSAGE

        path = try_as_cast_failure(exc)
        if path is not None:
            return HTTP_400, f"Resource not found. Invalid: {path}"

        fields = try_as_uniqueness_failure(exc)
        if fields is not None:
            return HTTP_400, f"{','.join(fields)} field has to be unique"

        return _own_status(exc), _describe(exc)

    def _render_unclassified(self, request: Request, exc: BaseException) -> JSONResponse:
        status_code, message = self.classify(exc)
        body = ErrorResponse(
            message=message,
            status_code=status_code,
            timestamp=_timestamp(),
            path=_request_target(request),
            stack_trace=_format_stack(exc) if self.development else None,
        )
        headers = getattr(exc, "headers", None)
        return JSONResponse(
            status_code=status_code,
            content=body.to_wire(),
            headers=dict(headers) if headers else None,
        )


class ErrorRenderingMiddleware:
    """Render failures that escaped every route-level exception handler.

    Installed as the innermost middleware, so the error response still
    passes through CORS, compression and the security headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            request = Request(scope, receive)
            if response_started:
                # Too late for an error body; the server closes the connection.
                logger.error(
                    "(StackTrace): %s %s failed after the response started: %s",
                    request.method,
                    _request_target(request),
                    exc,
                    exc_info=(type(exc), exc, exc.__traceback__),
                )
                return
            response = request.app.state.error_renderer.render(request, exc)
            await response(scope, receive, send)


def register_error_handlers(app: FastAPI, renderer: ErrorRenderer) -> None:
    """Register the error renderer on the FastAPI application.

    Args:
        app: The FastAPI application instance.
        renderer: The renderer every failure is funneled into.
    """
    app.state.error_renderer = renderer

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        """Render application errors with their fixed status."""
        return renderer.render(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Route misses become NotFoundError, other HTTP errors keep their status."""
        if exc.status_code == HTTP_404 and "endpoint" not in request.scope:
            return renderer.not_found(request)
        return renderer.render(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render malformed requests as BadRequestError."""
        issues = []
        for issue in exc.errors():
            location = ".".join(
                str(part) for part in issue.get("loc", ()) if part not in ("body", "query", "path")
            )
            message = str(issue.get("msg", "Invalid value"))
            issues.append(f"{location}: {message}" if location else message)
        error = BadRequestError(", ".join(issues) or None, operator_message=str(exc))
        return renderer.render(request, error)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for failures raised by the middleware layers themselves."""
        return renderer.render(request, exc)
