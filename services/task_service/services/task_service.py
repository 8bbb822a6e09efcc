"""
Task Service
Task persistence and task_created event publication

Commit order is fixed: validate the user, write the task, then publish.
The task write is authoritative; the notification is best effort. A failed
publish is reported to the caller but never rolls the task back.
"""

import logging
import uuid
from typing import List, Optional

from shared.schemas.base import utc_now
from shared.schemas.events import TaskCreatedPayload, TaskEvent
from shared.schemas.task import TaskSchema
from shared.utils.broker import BrokerConnection, TASK_NOTIFICATIONS_QUEUE
from shared.utils.database import Collection, ASCENDING, DESCENDING
from shared.utils.errors import ServiceUnavailableError
from services.task_service.utils.user_client import UserServiceClient

logger = logging.getLogger(__name__)


class TaskPublishError(ServiceUnavailableError):
    """The task was stored but its event could not be published"""

    def __init__(self, task: TaskSchema, cause: Optional[ServiceUnavailableError] = None):
        self.task = task
        super().__init__(
            "Task created but notification could not be queued",
            details={
                "step": "publish",
                "taskId": task.id,
                "reason": cause.message if cause else None,
            }
        )


class TaskService:
    """Task management and event production"""

    def __init__(
        self,
        collection: Collection,
        broker: BrokerConnection,
        user_client: UserServiceClient,
        queue_name: str = TASK_NOTIFICATIONS_QUEUE
    ):
        self.collection = collection
        self.broker = broker
        self.user_client = user_client
        self.queue_name = queue_name

    async def ensure_indexes(self) -> None:
        await self.collection.ensure()
        await self.collection.create_index([("userId", ASCENDING)])
        await self.collection.create_index([("createdAt", DESCENDING)])
        await self.collection.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])

    async def create_task_and_notify(self, title: str, description: Optional[str], user_id: str) -> TaskSchema:
        """
        Create a task for an existing user and announce it on the queue

        Raises:
            InvalidReferenceError: user_id does not resolve (nothing stored)
            TaskPublishError: task stored, event not published
        """
        # 1. Cross-service reference check; raises before anything is written
        await self.user_client.validate_user(user_id)

        # 2. Authoritative local write
        task = TaskSchema(
            id=str(uuid.uuid4()),
            title=title,
            description=description or "",
            user_id=user_id,
            created_at=utc_now()
        )
        stored = TaskSchema.model_validate(await self.collection.insert_one(task.to_document()))
        logger.info(f"Task created: {stored.id} for user {user_id}")

        # 3. Best-effort notification
        event = TaskEvent(payload=TaskCreatedPayload(task_id=stored.id, title=stored.title, user_id=stored.user_id))
        body, headers = event.to_message()
        try:
            await self.broker.publish(self.queue_name, body, headers=headers)
        except ServiceUnavailableError as e:
            logger.error(f"❌ Task {stored.id} stored but event not published: {e.message}")
            raise TaskPublishError(stored, e) from e

        logger.info(f"📤 Task notification {event.event_id} sent to {self.queue_name}")
        return stored

    async def list_tasks(self) -> List[TaskSchema]:
        documents = await self.collection.find(sort=[("createdAt", DESCENDING)])
        return [TaskSchema.model_validate(doc) for doc in documents]

    async def list_tasks_for_user(self, user_id: str) -> List[TaskSchema]:
        documents = await self.collection.find({"userId": user_id}, sort=[("createdAt", DESCENDING)])
        return [TaskSchema.model_validate(doc) for doc in documents]
