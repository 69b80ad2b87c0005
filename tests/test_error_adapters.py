"""
Tests for the collaborator failure recognizers.

Each recognizer is exercised in isolation against real driver
exceptions and hand-built look-alikes.
"""

from types import SimpleNamespace

from bson.errors import InvalidId
from pydantic import BaseModel, ValidationError
from pymongo.errors import DuplicateKeyError

from app.shared.errors.adapters import (
    try_as_cast_failure,
    try_as_uniqueness_failure,
    try_as_validation_failure,
)


class Account(BaseModel):
    email: str
    age: int


class OdmValidationError(Exception):
    """Mimics an ODM validation error keyed by field name."""

    def __init__(self, errors: dict) -> None:
        super().__init__("Validation failed")
        self.errors = errors


class CastError(Exception):
    def __init__(self, path: str) -> None:
        super().__init__(f"Cast failed for {path}")
        self.path = path


def _pydantic_error() -> ValidationError:
    try:
        Account(email="a@b.c", age="old")
    except ValidationError as exc:
        return exc
    raise AssertionError("expected a ValidationError")


class TestValidationRecognizer:
    def test_pydantic_validation_error(self) -> None:
        messages = try_as_validation_failure(_pydantic_error())
        assert messages is not None
        assert len(messages) == 1
        assert messages[0].startswith("age: ")

    def test_errors_mapping(self) -> None:
        exc = OdmValidationError(
            {
                "name": {"message": "Name is required"},
                "age": SimpleNamespace(message="Age must be positive"),
            }
        )
        assert try_as_validation_failure(exc) == [
            "Name is required",
            "Age must be positive",
        ]

    def test_sub_errors_without_message_are_skipped(self) -> None:
        exc = OdmValidationError({"name": {"kind": "required"}})
        assert try_as_validation_failure(exc) == []

    def test_plain_exception_is_not_recognized(self) -> None:
        assert try_as_validation_failure(RuntimeError("boom")) is None

    def test_empty_mapping_is_not_recognized(self) -> None:
        assert try_as_validation_failure(OdmValidationError({})) is None


class TestCastRecognizer:
    def test_path_attribute(self) -> None:
        assert try_as_cast_failure(CastError("owner_id")) == "owner_id"

    def test_invalid_object_id(self) -> None:
        assert try_as_cast_failure(InvalidId("'abc' is not a valid ObjectId")) == "_id"

    def test_empty_path_is_not_recognized(self) -> None:
        assert try_as_cast_failure(CastError("")) is None

    def test_plain_exception_is_not_recognized(self) -> None:
        assert try_as_cast_failure(ValueError("nope")) is None


class TestUniquenessRecognizer:
    def test_pymongo_duplicate_key_error(self) -> None:
        exc = DuplicateKeyError(
            "E11000 duplicate key error collection: starter.users index: email_1",
            code=11000,
            details={"keyValue": {"email": "ada@example.com"}},
        )
        assert try_as_uniqueness_failure(exc) == ["email"]

    def test_key_value_attribute(self) -> None:
        exc = Exception("dup")
        exc.code = 11000
        exc.keyValue = {"org": 1, "slug": "acme"}
        assert try_as_uniqueness_failure(exc) == ["org", "slug"]

    def test_duplicate_without_fields(self) -> None:
        exc = Exception("dup")
        exc.code = 11000
        assert try_as_uniqueness_failure(exc) == []

    def test_other_codes_are_not_recognized(self) -> None:
        exc = Exception("write conflict")
        exc.code = 112
        assert try_as_uniqueness_failure(exc) is None
