"""
Tests for the error envelope and exception handlers
"""

from datetime import datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from shared.utils.errors import (
    InvalidReferenceError,
    ServiceUnavailableError,
    ValidationError,
    register_exception_handlers,
)


class ItemSchema(BaseModel):
    title: str
    owner: str


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/invalid-reference")
    async def invalid_reference():
        raise InvalidReferenceError("Invalid user ID", details={"userId": "u-404"})

    @app.get("/unavailable")
    async def unavailable():
        raise ServiceUnavailableError("Task Service Unavailable", details={"service": "task-service"})

    @app.get("/validation")
    async def validation():
        raise ValidationError("Email must be unique")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("database password is hunter2")

    @app.post("/items")
    async def create_item(item: ItemSchema):
        return item

    return app


@pytest.fixture
def client():
    return TestClient(build_app(), raise_server_exceptions=False)


class TestErrorEnvelope:
    """Uniform {"error": {...}} responses"""

    def test_service_error_maps_status_and_code(self, client):
        response = client.get("/invalid-reference", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REFERENCE"
        assert error["message"] == "Invalid user ID"
        assert error["requestId"] == "req-1"
        assert error["details"] == {"userId": "u-404"}
        assert datetime.fromisoformat(error["timestamp"]).utcoffset() == timedelta(0)

    def test_unavailable_is_503(self, client):
        response = client.get("/unavailable")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    def test_validation_error_is_400(self, client):
        response = client.get("/validation")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_missing_fields_are_listed(self, client):
        response = client.post("/items", json={"title": "Buy milk"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["message"] == "Missing required fields: owner"

    def test_unknown_route(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "ROUTE_NOT_FOUND"
        assert error["path"] == "/nowhere"
        assert error["method"] == "GET"

    def test_unhandled_exception_is_500_with_stack_outside_production(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert error["message"] == "Internal Server Error"
        assert "RuntimeError" in error["stack"]

    def test_production_hides_diagnostics(self, client, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")

        crash = client.get("/crash").json()["error"]
        reference = client.get("/invalid-reference").json()["error"]

        assert "stack" not in crash
        assert "hunter2" not in str(crash)
        assert "details" not in reference
