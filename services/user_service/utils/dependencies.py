"""
FastAPI Dependencies
"""

from typing import Annotated

from fastapi import Depends, Request

from services.user_service.services.user_service import UserService


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
