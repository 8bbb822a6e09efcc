"""
FastAPI Dependencies
"""

from typing import Annotated

from fastapi import Depends, Request

from services.notification_service.services.notification_service import NotificationService


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
