"""
Broker event schemas

The message body is the bare payload ({taskId, title, userId}); the event
envelope (id, kind, production time) travels in the message headers.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import ConfigDict, Field

from .base import CamelModel, utc_now

EVENT_ID_HEADER = "event-id"
EVENT_KIND_HEADER = "event-kind"
PRODUCED_AT_HEADER = "produced-at"


class EventKind(str, Enum):
    TASK_CREATED = "task_created"


class TaskCreatedPayload(CamelModel):
    """Body of a task_created message"""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(..., min_length=1)
    title: str
    user_id: str = Field(..., min_length=1)


class TaskEvent(CamelModel):
    """Immutable event placed on the task notification queue"""

    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: EventKind = EventKind.TASK_CREATED
    payload: TaskCreatedPayload
    produced_at: datetime = Field(default_factory=utc_now)

    def to_message(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return (body, headers) for publishing"""
        headers = {
            EVENT_KIND_HEADER: self.kind.value,
            PRODUCED_AT_HEADER: self.produced_at.isoformat(),
        }
        if self.event_id:
            headers[EVENT_ID_HEADER] = self.event_id
        return self.payload.to_document(), headers

    @classmethod
    def from_message(cls, body: Dict[str, Any], headers: Optional[Dict[str, Any]] = None) -> "TaskEvent":
        """
        Rebuild an event from a delivered message

        Messages published without envelope headers still parse; they simply
        carry no event id.

        Raises:
            pydantic.ValidationError: body is not a valid task_created payload
        """
        headers = headers or {}
        data: Dict[str, Any] = {
            "event_id": headers.get(EVENT_ID_HEADER),
            "kind": headers.get(EVENT_KIND_HEADER, EventKind.TASK_CREATED.value),
            "payload": TaskCreatedPayload.model_validate(body),
        }
        if headers.get(PRODUCED_AT_HEADER):
            data["produced_at"] = headers[PRODUCED_AT_HEADER]
        return cls(**data)
