"""
Pydantic schemas for API responses.

Error envelopes use camelCase on the wire; field names stay snake_case
in Python. No business logic belongs here.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AppErrorResponse(_CamelModel):
    """Error body for failures raised through the application error taxonomy.

    Attributes:
        message: Client-safe message of the failure.
        original_error: Cause description, ``"Error"`` outside development.
        path: Request target with the API prefix stripped.
    """

    success: Literal[False] = False
    error: Literal[True] = True
    message: str
    original_error: str = "Error"
    status_code: int
    timestamp: str
    path: str


class ErrorResponse(_CamelModel):
    """Error body for any other failure.

    ``stack_trace`` is only populated in development mode.
    """

    success: Literal[False] = False
    message: str
    status_code: int
    timestamp: str
    path: str
    stack_trace: str | None = None


class RateLimitResponse(BaseModel):
    success: Literal[False] = False
    message: str


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    environment: str
    database: str
    cache: str
