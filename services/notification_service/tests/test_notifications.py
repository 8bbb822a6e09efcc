"""
Tests for notification persistence and routes
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from services.notification_service.main import app
from services.notification_service.services.notification_service import NotificationService
from shared.schemas.events import TaskCreatedPayload, TaskEvent
from shared.schemas.notification import NotificationStatus, NotificationType


def task_event(event_id="e1", task_id="t1", title="Buy milk", user_id="u1"):
    return TaskEvent(
        event_id=event_id,
        payload=TaskCreatedPayload(task_id=task_id, title=title, user_id=user_id)
    )


@pytest.fixture
async def notification_service(collection_factory):
    service = NotificationService(collection_factory("notifications"))
    await service.ensure_indexes()
    return service


@pytest.fixture
def client(collection_factory):
    collection = collection_factory("notifications")
    collection.unique_indexes.append((("eventId",), True))
    app.state.notification_service = NotificationService(collection)
    app.state.store = MagicMock(status="connected")
    app.state.broker = MagicMock(status="connected")
    app.state.consumer = None
    return TestClient(app)


class TestCreateFromEvent:

    @pytest.mark.asyncio
    async def test_event_becomes_sent_notification(self, notification_service):
        notification = await notification_service.create_from_event(task_event())

        assert notification.task_id == "t1"
        assert notification.user_id == "u1"
        assert notification.title == "Buy milk"
        assert notification.message == "New task created: Buy milk"
        assert notification.type is NotificationType.TASK_CREATED
        assert notification.status is NotificationStatus.SENT
        assert notification.event_id == "e1"

    @pytest.mark.asyncio
    async def test_redelivered_event_is_stored_once(self, notification_service):
        first = await notification_service.create_from_event(task_event())
        second = await notification_service.create_from_event(task_event())

        assert second.id == first.id
        assert await notification_service.collection.count() == 1

    @pytest.mark.asyncio
    async def test_events_without_id_are_not_deduplicated(self, notification_service):
        await notification_service.create_from_event(task_event(event_id=None))
        await notification_service.create_from_event(task_event(event_id=None))

        assert await notification_service.collection.count() == 2

    @pytest.mark.asyncio
    async def test_distinct_events_for_one_task(self, notification_service):
        await notification_service.create_from_event(task_event(event_id="e1"))
        await notification_service.create_from_event(task_event(event_id="e2"))

        notifications = await notification_service.list_notifications_for_user("u1")
        assert len(notifications) == 2


class TestNotificationRoutes:

    def test_manual_notification(self, client):
        response = client.post("/notifications", json={"userId": "u1", "message": "Welcome!"})

        assert response.status_code == 201
        data = response.json()
        assert data["userId"] == "u1"
        assert data["type"] == "manual"
        assert data["status"] == "sent"

    def test_manual_notification_missing_fields(self, client):
        response = client.post("/notifications", json={"message": "Welcome!"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Missing required fields: userId"

    def test_list_by_user(self, client):
        client.post("/notifications", json={"userId": "u1", "message": "For u1"})
        client.post("/notifications", json={"userId": "u2", "message": "For u2"})

        everything = client.get("/notifications").json()
        mine = client.get("/notifications/user/u1").json()

        assert len(everything) == 2
        assert [n["message"] for n in mine] == ["For u1"]

    def test_health_without_consumer(self, client):
        data = client.get("/health").json()

        assert data["service"] == "notification-service"
        assert data["rabbitmq"] == "connected"
        assert data["consumer"] == "disabled"
