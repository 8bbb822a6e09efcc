"""
User Management Routes
"""

import logging
from typing import List

from fastapi import APIRouter, status

from shared.schemas.user import UserCreateSchema, UserSchema, UserValidationSchema
from shared.utils.errors import NotFoundError
from services.user_service.utils.dependencies import UserServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: UserCreateSchema, user_service: UserServiceDep):
    """Register a user; emails are unique"""
    return await user_service.create_user(user_data)


@router.get("", response_model=List[UserSchema])
async def list_users(user_service: UserServiceDep):
    return await user_service.list_users()


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(user_id: str, user_service: UserServiceDep):
    user = await user_service.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


@router.get("/{user_id}/validate", response_model=UserValidationSchema)
async def validate_user(user_id: str, user_service: UserServiceDep):
    """
    Check that a user exists

    Called by the task service before it accepts a task for this user.
    """
    result = await user_service.validate_user(user_id)
    logger.info(f"User validation: {user_id} -> {'valid' if result.valid else 'invalid'}")
    return result
