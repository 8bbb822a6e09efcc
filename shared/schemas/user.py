"""
User data schemas

Pydantic models for user data validation and serialization.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from .base import CamelModel, utc_now


class UserCreateSchema(CamelModel):
    """Schema for creating a new user"""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name must not be blank')
        return v


class UserSchema(CamelModel):
    """Stored user"""
    id: str
    name: str
    email: str
    created_at: datetime = Field(default_factory=utc_now)


class UserValidationSchema(CamelModel):
    """Answer to "does this user id resolve?" """
    valid: bool
    user_id: str
    name: Optional[str] = None
