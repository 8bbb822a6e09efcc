"""
Shared data schemas for the task platform

This package contains common data schemas used across all microservices.
"""

from .base import CamelModel, utc_now
from .user import UserCreateSchema, UserSchema, UserValidationSchema
from .task import TaskCreateSchema, TaskSchema
from .notification import (
    NotificationType,
    NotificationStatus,
    NotificationCreateSchema,
    NotificationSchema,
)
from .events import EventKind, TaskCreatedPayload, TaskEvent

__all__ = [
    "CamelModel",
    "utc_now",
    "UserCreateSchema",
    "UserSchema",
    "UserValidationSchema",
    "TaskCreateSchema",
    "TaskSchema",
    "NotificationType",
    "NotificationStatus",
    "NotificationCreateSchema",
    "NotificationSchema",
    "EventKind",
    "TaskCreatedPayload",
    "TaskEvent",
]

__version__ = "1.0.0"
