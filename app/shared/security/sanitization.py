"""
Request input hardening middleware.

- ParameterPollutionMiddleware: duplicate query parameters collapse to
  their last value, so handlers never receive an unexpected list.
- InputSanitizerMiddleware: strips markup (XSS payloads) from top-level
  string values of the query string and of JSON request bodies.
- RequestSizeLimitMiddleware: rejects bodies larger than the configured
  limit, whether declared in Content-Length or streamed without one.

Written as plain ASGI middleware so the request body can be replayed
to the application after it has been rewritten.
"""

import json
import logging
from urllib.parse import parse_qsl, urlencode

import nh3
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

HTTP_413 = 413


def _collapse_query(query_string: bytes) -> bytes:
    pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
    collapsed = dict(pairs)
    return urlencode(collapsed).encode("latin-1")


def sanitize_value(value):
    """Strip markup from a string; leave other values untouched.

    Strings without a tag opening are returned as-is, so plain text such
    as ``Tom & Jerry`` is not entity-escaped.
    """
    if not isinstance(value, str) or "<" not in value:
        return value
    return nh3.clean(value)


def sanitize_payload(payload):
    """Sanitize the top-level values of a decoded JSON payload."""
    if isinstance(payload, dict):
        return {key: sanitize_value(item) for key, item in payload.items()}
    if isinstance(payload, list):
        return [sanitize_value(item) for item in payload]
    return sanitize_value(payload)


class ParameterPollutionMiddleware:
    """Keep only the last value of repeated query parameters."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope.get("query_string"):
            scope = dict(scope)
            scope["query_string"] = _collapse_query(scope["query_string"])
        await self.app(scope, receive, send)


class InputSanitizerMiddleware:
    """Strip XSS payloads from query parameters and JSON bodies."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        if scope.get("query_string"):
            pairs = parse_qsl(scope["query_string"].decode("latin-1"), keep_blank_values=True)
            cleaned = [(key, sanitize_value(value)) for key, value in pairs]
            scope["query_string"] = urlencode(cleaned).encode("latin-1")

        content_type = Headers(scope=scope).get("content-type", "")
        if not content_type.startswith("application/json"):
            await self.app(scope, receive, send)
            return

        body, trailing = await self._read_body(receive)
        body = self._sanitize_body(body)
        scope["headers"] = [
            (name, value) for name, value in scope["headers"] if name != b"content-length"
        ] + [(b"content-length", str(len(body)).encode("latin-1"))]

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            if trailing is not None:
                return trailing
            return await receive()

        await self.app(scope, replay, send)

    @staticmethod
    async def _read_body(receive: Receive) -> tuple[bytes, Message | None]:
        chunks = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                return b"".join(chunks), message
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                return b"".join(chunks), None

    @staticmethod
    def _sanitize_body(body: bytes) -> bytes:
        if not body:
            return body
        try:
            payload = json.loads(body)
        except ValueError:
            # Left as-is; request validation reports the malformed body.
            return body
        return json.dumps(sanitize_payload(payload)).encode("utf-8")


class RequestEntityTooLargeError(Exception):
    """Raised when a request body exceeds the configured size limit."""

    status_code = HTTP_413

    def __init__(self, limit: int) -> None:
        super().__init__("request entity too large")
        self.limit = limit


class RequestSizeLimitMiddleware:
    """Reject request bodies larger than ``max_bytes``.

    A declared Content-Length is checked up front. Bodies sent without
    one are counted as they are received. The rejection is rendered by
    the application's error renderer.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
            logger.warning("Rejected body of %s bytes (limit %d)", declared, self.max_bytes)
            await self._reject(scope, receive, send, RequestEntityTooLargeError(self.max_bytes))
            return

        received = 0
        response_started = False

        async def counting_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise RequestEntityTooLargeError(self.max_bytes)
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, counting_receive, send_wrapper)
        except RequestEntityTooLargeError as exc:
            if response_started:
                logger.error("Body limit exceeded after the response started")
                return
            logger.warning("Rejected streamed body over %d bytes", self.max_bytes)
            await self._reject(scope, receive, send, exc)

    @staticmethod
    async def _reject(
        scope: Scope, receive: Receive, send: Send, error: RequestEntityTooLargeError
    ) -> None:
        request = Request(scope, receive)
        response = request.app.state.error_renderer.render(request, error)
        await response(scope, receive, send)
