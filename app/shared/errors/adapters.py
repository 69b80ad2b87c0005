"""
Recognizers for failures raised by collaborators.

Database drivers and ODMs do not raise application errors. Each function
here inspects an opaque exception for one well-known shape and returns
the extracted detail, or ``None`` when the shape does not match.
The renderer tries them in a fixed order.
"""

from collections.abc import Mapping
from typing import Any

from bson.errors import InvalidId
from pydantic import ValidationError

DUPLICATE_KEY_CODE = 11000


def _sub_error_message(item: Any) -> str | None:
    if isinstance(item, Mapping):
        message = item.get("message")
    else:
        message = getattr(item, "message", None)
    return str(message) if message is not None else None


def try_as_validation_failure(exc: BaseException) -> list[str] | None:
    """Recognize a named-field validation failure.

    Matches pydantic ``ValidationError`` and any exception exposing an
    ``errors`` mapping of field name to sub-error with a ``message``.

    Returns:
        One message per failing field, or None.
    """
    if isinstance(exc, ValidationError):
        messages = []
        for issue in exc.errors():
            location = ".".join(str(part) for part in issue.get("loc", ()))
            message = str(issue.get("msg", "Invalid value"))
            messages.append(f"{location}: {message}" if location else message)
        return messages

    errors = getattr(exc, "errors", None)
    if not isinstance(errors, Mapping) or not errors:
        return None
    messages = [_sub_error_message(item) for item in errors.values()]
    return [message for message in messages if message is not None]


def try_as_cast_failure(exc: BaseException) -> str | None:
    """Recognize a value that could not be cast to a field's type.

    Returns:
        The faulty field path, or None.
    """
    if isinstance(exc, InvalidId):
        return "_id"
    path = getattr(exc, "path", None)
    if isinstance(path, str) and path:
        return path
    return None


def try_as_uniqueness_failure(exc: BaseException) -> list[str] | None:
    """Recognize a unique index violation (duplicate key).

    Reads the offending fields from ``key_value``/``keyValue`` or, as
    pymongo's ``DuplicateKeyError`` carries them, ``details["keyValue"]``.

    Returns:
        The offending field names (possibly empty), or None.
    """
    if getattr(exc, "code", None) != DUPLICATE_KEY_CODE:
        return None

    key_value = getattr(exc, "key_value", None) or getattr(exc, "keyValue", None)
    if key_value is None:
        details = getattr(exc, "details", None)
        if isinstance(details, Mapping):
            key_value = details.get("keyValue")
    if not isinstance(key_value, Mapping):
        return []
    return [str(field) for field in key_value]
