"""
Document database connection.

Wraps pymongo's asynchronous client: connect on startup, close on
shutdown, report status to the health endpoint. Server monitoring
events are forwarded to the log.
"""

import logging

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError
from pymongo.monitoring import (
    ServerClosedEvent,
    ServerDescriptionChangedEvent,
    ServerListener,
    ServerOpeningEvent,
)

from app.shared.errors.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "example"


class ServerEventLogger(ServerListener):
    """Log connectivity changes reported by the driver's monitor."""

    def opened(self, event: ServerOpeningEvent) -> None:
        logger.debug("MongoDB server %s opening", event.server_address)

    def description_changed(self, event: ServerDescriptionChangedEvent) -> None:
        was_known = event.previous_description.is_server_type_known
        is_known = event.new_description.is_server_type_known
        if is_known and not was_known:
            logger.info("MongoDB server %s connected", event.server_address)
        elif was_known and not is_known:
            logger.warning(
                "MongoDB server %s disconnected. Trying to reconnect...",
                event.server_address,
            )

    def closed(self, event: ServerClosedEvent) -> None:
        logger.info("MongoDB server %s closed", event.server_address)


class DatabaseConnection:
    """Lifecycle wrapper around an ``AsyncMongoClient``.

    Args:
        uri: MongoDB connection string.
    """

    def __init__(self, uri: str) -> None:
        self.uri = uri
        self._client: AsyncMongoClient | None = None
        self._connected = False

    async def connect(self) -> None:
        """Open the client and verify the server answers a ping.

        Raises:
            ServiceUnavailableError: If the server cannot be reached.
        """
        self._client = AsyncMongoClient(
            self.uri,
            compressors="zlib",
            event_listeners=[ServerEventLogger()],
        )
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.error("Initial MongoDB connection error: %s", exc)
            await self._client.close()
            self._client = None
            raise ServiceUnavailableError(
                operator_message=f"MongoDB connection error: {exc}",
                original_error=exc,
            ) from exc

        self._connected = True
        hosts = ", ".join(
            f"{host}:{port}"
            for host, port in self._client.topology_description.server_descriptions()
        )
        logger.info("MongoDB Connected: %s", hosts)

    async def disconnect(self) -> None:
        """Close the client. Errors are logged, not raised."""
        if self._client is None:
            return
        try:
            await self._client.close()
            logger.info("MongoDB Disconnected")
        except PyMongoError as exc:
            logger.error("MongoDB disconnect error: %s", exc)
        finally:
            self._client = None
            self._connected = False

    @property
    def status(self) -> str:
        return "connected" if self._connected else "disconnected"

    def get_database(self) -> AsyncDatabase:
        """Return the database named in the URI, or the default one."""
        if self._client is None:
            raise ServiceUnavailableError(operator_message="MongoDB client is not connected")
        return self._client.get_default_database(default=DEFAULT_DATABASE)
