"""
Redis connection for caching and background queues.

The client is created lazily: nothing touches the network until
``connect`` is awaited during application startup.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.shared.errors.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

STATUS_WAIT = "wait"
STATUS_READY = "ready"
STATUS_END = "end"


class RedisConnection:
    """Lifecycle wrapper around an asyncio Redis client.

    Args:
        host: Redis host name.
        port: Redis port.
        password: Optional password.
        db: Logical database index.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        password: str | None = None,
        db: int = 10,
    ) -> None:
        self._client = aioredis.Redis(
            host=host,
            port=port,
            password=password or None,
            db=db,
            decode_responses=True,
        )
        self._status = STATUS_WAIT

    async def connect(self) -> None:
        """Verify the server answers a ping.

        Raises:
            ServiceUnavailableError: If Redis cannot be reached.
        """
        if self._status == STATUS_READY:
            logger.info("[REDIS] Already %s, skipping connect", self._status)
            return
        try:
            await self._client.ping()
        except RedisError as exc:
            logger.error("[REDIS] Failed to connect: %s", exc)
            raise ServiceUnavailableError(
                operator_message=f"Redis connection error: {exc}",
                original_error=exc,
            ) from exc
        self._status = STATUS_READY
        logger.info("[REDIS] Redis connected successfully")

    async def disconnect(self) -> None:
        """Close the client if it was connected."""
        if self._status != STATUS_READY:
            return
        try:
            await self._client.aclose()
        except RedisError as exc:
            logger.error("[REDIS] Error during disconnect: %s", exc)
            raise
        self._status = STATUS_END
        logger.info("[REDIS] Redis disconnected successfully")

    def get_client(self) -> aioredis.Redis:
        return self._client

    @property
    def status(self) -> str:
        return self._status
