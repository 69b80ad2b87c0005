"""
Application error taxonomy.

Every failure the application raises on purpose is one of the kinds
below. Each kind has a fixed HTTP status and a default client-safe
message; the status can never be overridden by the caller.
No framework imports allowed.
"""

from enum import Enum
from typing import ClassVar


class ErrorKind(Enum):
    """Closed set of failure kinds with their status and default message."""

    GENERIC = (500, "Something went wrong, try again later")
    BAD_REQUEST = (400, "Validation failed")
    NOT_FOUND = (404, "Resource not found")
    UNAUTHORIZED = (401, "Unauthorized access")
    FORBIDDEN = (403, "Forbidden access")
    CONFLICT = (409, "Resource conflict")
    RATE_LIMITED = (429, "Rate limit exceeded")
    SERVICE_UNAVAILABLE = (503, "Service temporarily unavailable")
    QUEUE_TIMEOUT = (504, "Gateway Timeout")

    def __init__(self, status_code: int, default_message: str) -> None:
        self.status_code = status_code
        self.default_message = default_message


class AppError(Exception):
    """Base error for all application failures.

    Attributes:
        message: Client-safe message.
        operator_message: Message for the operator log, may hold internals.
        original_error: Wrapped cause, kept for diagnostics only.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    def __init__(
        self,
        message: str | None = None,
        original_error: BaseException | None = None,
        *,
        operator_message: str | None = None,
    ) -> None:
        self.message = message or self.kind.default_message
        self.operator_message = operator_message or self.message
        self.original_error = original_error
        self.is_operational = True
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def cause(self) -> BaseException | None:
        """The wrapped cause, falling back to ``raise ... from exc``."""
        return self.original_error or self.__cause__

    def to_http(self) -> tuple[int, str]:
        """Return the HTTP status and client-safe message pair."""
        return self.status_code, self.message


class BadRequestError(AppError):
    """Raised when the request payload fails validation."""

    kind = ErrorKind.BAD_REQUEST


class NotFoundError(AppError):
    """Raised when a resource or route does not exist."""

    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(AppError):
    """Raised when the caller lacks permission."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(AppError):
    """Raised when a write conflicts with existing state."""

    kind = ErrorKind.CONFLICT


class RateLimitError(AppError):
    kind = ErrorKind.RATE_LIMITED


class ServiceUnavailableError(AppError):
    """Raised when a backing service (database, cache) cannot be reached."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class QueueTimeoutError(AppError):
    """Raised when a queued job does not finish in time."""

    kind = ErrorKind.QUEUE_TIMEOUT
