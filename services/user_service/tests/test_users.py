"""
Tests for user registration and validation
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from services.user_service.main import app
from services.user_service.services.user_service import UserService
from shared.schemas.user import UserCreateSchema
from shared.utils.errors import ValidationError


@pytest.fixture
def user_service(collection_factory):
    return UserService(collection_factory("users"))


@pytest.fixture
def client(user_service):
    app.state.user_service = user_service
    user_service.collection.unique_indexes.append((("email",), False))
    return TestClient(app)


class TestUserService:

    @pytest.mark.asyncio
    async def test_create_and_validate(self, user_service):
        user = await user_service.create_user(UserCreateSchema(name="Ada", email="Ada@Example.com"))

        result = await user_service.validate_user(user.id)

        assert user.email == "ada@example.com"
        assert result.valid is True
        assert result.user_id == user.id
        assert result.name == "Ada"

    @pytest.mark.asyncio
    async def test_unknown_user_is_invalid(self, user_service):
        result = await user_service.validate_user("missing")

        assert result.valid is False
        assert result.user_id == "missing"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, user_service):
        await user_service.ensure_indexes()
        await user_service.create_user(UserCreateSchema(name="Ada", email="ada@example.com"))

        with pytest.raises(ValidationError) as exc_info:
            await user_service.create_user(UserCreateSchema(name="Ada L.", email="ADA@example.com"))

        assert exc_info.value.message == "Email must be unique"


class TestUserRoutes:

    def test_create_user(self, client):
        response = client.post("/users", json={"name": "Ada", "email": "ada@example.com"})

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Ada"
        assert data["email"] == "ada@example.com"
        assert data["id"]
        assert "createdAt" in data

    def test_create_user_missing_email(self, client):
        response = client.post("/users", json={"name": "Ada"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Missing required fields: email"

    def test_duplicate_email(self, client):
        client.post("/users", json={"name": "Ada", "email": "ada@example.com"})

        response = client.post("/users", json={"name": "Other", "email": "ada@example.com"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_get_and_list(self, client):
        created = client.post("/users", json={"name": "Ada", "email": "ada@example.com"}).json()

        assert client.get(f"/users/{created['id']}").json()["email"] == "ada@example.com"
        assert [u["id"] for u in client.get("/users").json()] == [created["id"]]

    def test_get_unknown_user(self, client):
        response = client.get("/users/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_validate_endpoint(self, client):
        created = client.post("/users", json={"name": "Ada", "email": "ada@example.com"}).json()

        valid = client.get(f"/users/{created['id']}/validate").json()
        invalid = client.get("/users/missing/validate").json()

        assert valid == {"valid": True, "userId": created["id"], "name": "Ada"}
        assert invalid["valid"] is False
        assert invalid["userId"] == "missing"


def test_health_reports_database_state(client):
    app.state.store = MagicMock(status="connected")

    data = client.get("/health").json()

    assert data["status"] == "OK"
    assert data["service"] == "user-service"
    assert data["database"] == "connected"
    assert "rabbitmq" not in data
