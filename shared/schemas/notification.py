"""
Notification data schemas
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import CamelModel, utc_now


class NotificationType(str, Enum):
    """Notification type enumeration"""
    TASK_CREATED = "task_created"
    MANUAL = "manual"


class NotificationStatus(str, Enum):
    """Notification status enumeration"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationCreateSchema(CamelModel):
    """Schema for creating a notification by hand (no event involved)"""
    user_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=1000)
    title: Optional[str] = Field(None, max_length=200)
    task_id: Optional[str] = None
    type: NotificationType = NotificationType.MANUAL
    status: NotificationStatus = NotificationStatus.SENT


class NotificationSchema(CamelModel):
    """Stored notification"""
    id: str
    task_id: Optional[str] = None
    title: Optional[str] = None
    user_id: str
    message: str
    type: NotificationType
    status: NotificationStatus
    event_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
