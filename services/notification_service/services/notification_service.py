"""
Notification Service
Notification persistence, both event-derived and manual
"""

import logging
import uuid
from typing import List

from shared.schemas.base import utc_now
from shared.schemas.events import TaskEvent
from shared.schemas.notification import (
    NotificationCreateSchema,
    NotificationSchema,
    NotificationStatus,
    NotificationType,
)
from shared.utils.database import Collection, ASCENDING, DESCENDING
from shared.utils.errors import InternalError

logger = logging.getLogger(__name__)


class NotificationService:
    """Notification management backed by the notifications collection"""

    def __init__(self, collection: Collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.ensure()
        await self.collection.create_index([("userId", ASCENDING)])
        await self.collection.create_index([("createdAt", DESCENDING)])
        # One notification per event, however often the event is redelivered
        await self.collection.create_index(
            [("eventId", ASCENDING)], unique=True, sparse=True, name="notifications_event_unique"
        )

    async def create_from_event(self, event: TaskEvent) -> NotificationSchema:
        """
        Persist the notification derived from a task_created event

        Idempotent per event id: a redelivered event returns the record
        stored the first time instead of creating another one.
        """
        payload = event.payload
        record = NotificationSchema(
            id=str(uuid.uuid4()),
            task_id=payload.task_id,
            title=payload.title,
            user_id=payload.user_id,
            message=f"New task created: {payload.title}",
            type=NotificationType.TASK_CREATED,
            status=NotificationStatus.SENT,
            event_id=event.event_id,
            created_at=utc_now()
        )

        # Events published without an id cannot be deduplicated
        stored = await self.collection.insert_one(
            record.to_document(), ignore_duplicates=event.event_id is not None
        )
        if stored is None:
            existing = await self.collection.find_one({"eventId": event.event_id})
            if existing is None:
                raise InternalError(f"Notification for event {event.event_id} vanished after conflict")
            logger.info(f"♻️ Event {event.event_id} already processed, keeping notification {existing['id']}")
            return NotificationSchema.model_validate(existing)

        logger.info(f"🔔 Notification {record.id} stored for task {payload.task_id} (user {payload.user_id})")
        return NotificationSchema.model_validate(stored)

    async def create_notification(self, data: NotificationCreateSchema) -> NotificationSchema:
        """Manual creation path; no event involved"""
        record = NotificationSchema(
            id=str(uuid.uuid4()),
            task_id=data.task_id,
            title=data.title,
            user_id=data.user_id,
            message=data.message,
            type=data.type,
            status=data.status,
            created_at=utc_now()
        )
        stored = await self.collection.insert_one(record.to_document())
        logger.info(f"Notification {record.id} created manually for user {data.user_id}")
        return NotificationSchema.model_validate(stored)

    async def list_notifications(self) -> List[NotificationSchema]:
        documents = await self.collection.find(sort=[("createdAt", DESCENDING)])
        return [NotificationSchema.model_validate(doc) for doc in documents]

    async def list_notifications_for_user(self, user_id: str) -> List[NotificationSchema]:
        documents = await self.collection.find({"userId": user_id}, sort=[("createdAt", DESCENDING)])
        return [NotificationSchema.model_validate(doc) for doc in documents]
