"""
Notification Routes
"""

from typing import List

from fastapi import APIRouter, status

from shared.schemas.notification import NotificationCreateSchema, NotificationSchema
from services.notification_service.utils.dependencies import NotificationServiceDep

router = APIRouter()


@router.post("", response_model=NotificationSchema, status_code=status.HTTP_201_CREATED)
async def create_notification(data: NotificationCreateSchema, notification_service: NotificationServiceDep):
    """Create a notification directly, bypassing the event queue"""
    return await notification_service.create_notification(data)


@router.get("", response_model=List[NotificationSchema])
async def list_notifications(notification_service: NotificationServiceDep):
    return await notification_service.list_notifications()


@router.get("/user/{user_id}", response_model=List[NotificationSchema])
async def list_user_notifications(user_id: str, notification_service: NotificationServiceDep):
    return await notification_service.list_notifications_for_user(user_id)
