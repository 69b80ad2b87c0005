"""
Tests for the centralized error renderer.

Builds the full application with routes that fail in known ways and
checks the status code and JSON body of each error response.
"""

import json
import re
from unittest.mock import patch

import pytest
from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError
from starlette.requests import Request

from app.shared.errors import handlers
from app.shared.errors.exceptions import ConflictError, NotFoundError, QueueTimeoutError
from app.shared.errors.handlers import ErrorRenderer

TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class Widget(BaseModel):
    name: str
    size: int


class HybridError(Exception):
    """Looks like both a validation failure and a cast failure."""

    def __init__(self) -> None:
        super().__init__("hybrid")
        self.errors = {"name": {"message": "Name is required"}}
        self.path = "owner_id"


def _add_failing_routes(app: FastAPI) -> FastAPI:
    @app.get("/api/widgets/{widget_id}")
    def get_widget(widget_id: int) -> dict:
        raise NotFoundError("Resource not found")

    @app.get("/api/boom")
    def boom() -> None:
        raise RuntimeError("disk full")

    @app.get("/api/silent")
    def silent() -> None:
        raise RuntimeError()

    @app.get("/api/duplicate")
    def duplicate() -> None:
        raise DuplicateKeyError(
            "E11000 duplicate key error",
            code=11000,
            details={"keyValue": {"email": "ada@example.com"}},
        )

    @app.get("/api/cast")
    def cast() -> None:
        raise InvalidId("'zzz' is not a valid ObjectId")

    @app.get("/api/invalid-document")
    def invalid_document() -> None:
        Widget(name="gear", size="huge")

    @app.get("/api/hybrid")
    def hybrid() -> None:
        raise HybridError()

    @app.get("/api/conflict")
    def conflict() -> None:
        raise ConflictError("Email already used", ValueError("E11000 on users.email"))

    @app.get("/api/queue")
    async def queue() -> None:
        raise QueueTimeoutError()

    @app.get("/api/gone")
    def gone() -> None:
        raise HTTPException(status_code=404, detail="Widget was archived")

    return app


@pytest.fixture
def client(build_app) -> TestClient:
    app = _add_failing_routes(build_app(environment="production"))
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def dev_client(build_app) -> TestClient:
    app = _add_failing_routes(build_app(environment="development"))
    return TestClient(app, raise_server_exceptions=False)


def _request(path: str, query: bytes = b"") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "root_path": "",
            "query_string": query,
            "headers": [],
        }
    )


class TestApplicationErrors:
    """Failures raised through the taxonomy."""

    def test_not_found_in_handler(self, client: TestClient) -> None:
        response = client.get("/api/widgets/999")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] is True
        assert body["message"] == "Resource not found"
        assert body["statusCode"] == 404
        assert body["path"] == "/widgets/999"
        assert body["originalError"] == "Error"
        assert TIMESTAMP_PATTERN.match(body["timestamp"])
        assert "stackTrace" not in body

    def test_gateway_timeout(self, client: TestClient) -> None:
        response = client.get("/api/queue")
        assert response.status_code == 504
        assert response.json()["message"] == "Gateway Timeout"

    def test_cause_hidden_in_production(self, client: TestClient) -> None:
        response = client.get("/api/conflict")

        assert response.status_code == 409
        body = response.json()
        assert body["message"] == "Email already used"
        assert body["originalError"] == "Error"
        assert "E11000" not in response.text

    def test_cause_described_in_development(self, dev_client: TestClient) -> None:
        body = dev_client.get("/api/conflict").json()
        assert body["originalError"] == "ValueError: E11000 on users.email"
        assert "stackTrace" not in body

    def test_request_validation_is_bad_request(self, client: TestClient) -> None:
        response = client.get("/api/widgets/abc")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] is True
        assert body["message"].startswith("widget_id: ")
        assert body["path"] == "/widgets/abc"


class TestRouteNotFound:
    """Requests no route matches."""

    @pytest.mark.parametrize(
        "path",
        ["/nowhere", "/api/v2/widgets", "/api/widgets/9/parts", "/apiary", "/deep/a/b/c"],
    )
    def test_unmatched_path_is_named_in_message(self, client: TestClient, path: str) -> None:
        response = client.get(path)

        assert response.status_code == 404
        body = response.json()
        assert body["error"] is True
        assert path in body["message"]

    def test_message_includes_query_and_prefix_is_stripped(self, client: TestClient) -> None:
        body = client.get("/api/missing?page=2").json()
        assert body["message"] == "Route not found : /api/missing?page=2"
        assert body["path"] == "/missing?page=2"

    def test_prefix_is_stripped_per_segment(self, client: TestClient) -> None:
        assert client.get("/apiary").json()["path"] == "/apiary"

    def test_http_exception_from_handler_is_not_a_route_miss(self, client: TestClient) -> None:
        response = client.get("/api/gone")

        assert response.status_code == 404
        body = response.json()
        assert body["message"] == "Widget was archived"
        assert body["path"] == "/api/gone"
        assert "error" not in body

    def test_method_not_allowed_keeps_allow_header(self, client: TestClient) -> None:
        response = client.post("/healthz")

        assert response.status_code == 405
        assert response.headers["allow"] == "GET"
        assert response.json()["statusCode"] == 405


class TestCollaboratorFailures:
    """Failures recognized by shape."""

    def test_uniqueness_violation(self, client: TestClient) -> None:
        response = client.get("/api/duplicate")

        assert response.status_code == 400
        body = response.json()
        assert "email" in body["message"]
        assert "unique" in body["message"]
        assert body["statusCode"] == 400

    def test_cast_failure(self, client: TestClient) -> None:
        response = client.get("/api/cast")

        assert response.status_code == 400
        assert response.json()["message"] == "Resource not found. Invalid: _id"

    def test_validation_failure_stays_server_error(self, client: TestClient) -> None:
        response = client.get("/api/invalid-document")

        assert response.status_code == 500
        assert response.json()["message"].startswith("size: ")

    def test_validation_shape_wins_over_cast_shape(self, client: TestClient) -> None:
        response = client.get("/api/hybrid")

        assert response.status_code == 500
        assert response.json()["message"] == "Name is required"


class TestUnclassifiedFailures:
    """Failures nothing recognizes."""

    def test_runtime_failure_in_production(self, client: TestClient) -> None:
        response = client.get("/api/boom")

        assert response.status_code == 500
        body = response.json()
        assert body == {
            "success": False,
            "message": "disk full",
            "statusCode": 500,
            "timestamp": body["timestamp"],
            "path": "/api/boom",
        }

    def test_runtime_failure_in_development_has_stack_trace(
        self, dev_client: TestClient
    ) -> None:
        body = dev_client.get("/api/boom").json()
        assert body["stackTrace"]
        assert "RuntimeError: disk full" in body["stackTrace"]

    def test_empty_message_uses_fallback(self, client: TestClient) -> None:
        body = client.get("/api/silent").json()
        assert body["message"] == "Something went wrong, try again later"


class TestFailuresInsideMiddlewareStack:
    """Rendered failures still pass through CORS and the security headers."""

    def test_collaborator_failure_has_cors_and_security_headers(
        self, client: TestClient
    ) -> None:
        response = client.get("/api/duplicate", headers={"Origin": "https://client.example"})

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "SAMEORIGIN"

    def test_unclassified_failure_has_security_headers(self, client: TestClient) -> None:
        response = client.get("/api/boom")
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_failure_is_not_reraised(self, build_app) -> None:
        app = _add_failing_routes(build_app())
        response = TestClient(app).get("/api/boom")
        assert response.status_code == 500
        assert response.json()["message"] == "disk full"

    def test_failure_is_logged_once(self, client: TestClient) -> None:
        with patch.object(handlers.logger, "error") as log_error:
            client.get("/api/duplicate")
        log_error.assert_called_once()


class TestErrorRenderer:
    """Direct tests of the renderer."""

    def test_render_is_deterministic_apart_from_timestamp(self) -> None:
        renderer = ErrorRenderer(development=True)
        request = _request("/api/orders/7")
        error = RuntimeError("queue stalled")

        first = renderer.render(request, error)
        second = renderer.render(request, error)

        assert first.status_code == second.status_code == 500
        first_body = json.loads(first.body)
        second_body = json.loads(second.body)
        first_body.pop("timestamp")
        second_body.pop("timestamp")
        assert first_body == second_body
        assert first_body["stackTrace"]

    def test_not_found_hands_off_to_render(self) -> None:
        renderer = ErrorRenderer()
        with patch.object(renderer, "render", wraps=renderer.render) as render:
            response = renderer.not_found(_request("/api/ghost", b"x=1"))

        error = render.call_args.args[1]
        assert isinstance(error, NotFoundError)
        assert error.message == "Route not found : /api/ghost?x=1"
        assert response.status_code == 404

    def test_stack_trace_is_always_logged(self) -> None:
        renderer = ErrorRenderer(development=False)
        error = NotFoundError("gone")

        with patch.object(handlers.logger, "error") as log_error:
            renderer.render(_request("/api/x"), error)

        log_error.assert_called_once()
        assert log_error.call_args.kwargs["exc_info"][1] is error

    @pytest.mark.parametrize(
        ("target", "expected"),
        [
            ("/api/widgets/1", "/widgets/1"),
            ("/api", "/"),
            ("/apiary", "/apiary"),
            ("/v1/api/widgets", "/v1/api/widgets"),
        ],
    )
    def test_strip_api_prefix(self, target: str, expected: str) -> None:
        assert ErrorRenderer(api_prefix="/api").strip_api_prefix(target) == expected

    def test_empty_prefix_strips_nothing(self) -> None:
        assert ErrorRenderer(api_prefix="").strip_api_prefix("/api/x") == "/api/x"

    def test_own_status_code_is_used(self) -> None:
        class TooLarge(Exception):
            status_code = 413

        status_code, message = ErrorRenderer().classify(TooLarge("request entity too large"))
        assert (status_code, message) == (413, "request entity too large")
