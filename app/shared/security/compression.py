"""
Response compression middleware.

Gzip-compresses responses above a size threshold. Clients that send an
``X-No-Compression`` header always get the identity encoding.
"""

from starlette.datastructures import Headers
from starlette.middleware.gzip import GZipMiddleware
from starlette.types import Receive, Scope, Send

NO_COMPRESSION_HEADER = "x-no-compression"


class CompressionMiddleware(GZipMiddleware):
    """GZip middleware that honours the X-No-Compression opt-out."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and NO_COMPRESSION_HEADER in Headers(scope=scope):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
