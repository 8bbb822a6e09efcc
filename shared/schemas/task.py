"""
Task data schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CamelModel, utc_now


class TaskCreateSchema(CamelModel):
    """Schema for creating a task"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field("", max_length=5000)
    user_id: str = Field(..., min_length=1)


class TaskSchema(CamelModel):
    """Stored task"""
    id: str
    title: str
    description: Optional[str] = ""
    user_id: str
    created_at: datetime = Field(default_factory=utc_now)
