"""
User Service
Business logic for user management
"""

import logging
import uuid
from typing import List, Optional

from shared.schemas.base import utc_now
from shared.schemas.user import UserCreateSchema, UserSchema, UserValidationSchema
from shared.utils.database import Collection, DESCENDING, ASCENDING
from shared.utils.errors import DuplicateKeyError, ValidationError

logger = logging.getLogger(__name__)


class UserService:
    """User management backed by the users collection"""

    def __init__(self, collection: Collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.ensure()
        await self.collection.create_index([("email", ASCENDING)], unique=True, name="users_email_unique")
        await self.collection.create_index([("createdAt", DESCENDING)])

    async def create_user(self, data: UserCreateSchema) -> UserSchema:
        """
        Register a new user

        Raises:
            ValidationError: email already registered
        """
        user = UserSchema(id=str(uuid.uuid4()), name=data.name, email=data.email, created_at=utc_now())
        try:
            stored = await self.collection.insert_one(user.to_document())
        except DuplicateKeyError:
            logger.warning(f"Rejected duplicate email: {data.email}")
            raise ValidationError("Email must be unique", details={"field": "email"})

        logger.info(f"User created: {user.id}")
        return UserSchema.model_validate(stored)

    async def list_users(self) -> List[UserSchema]:
        documents = await self.collection.find(sort=[("createdAt", DESCENDING)])
        return [UserSchema.model_validate(doc) for doc in documents]

    async def get_user(self, user_id: str) -> Optional[UserSchema]:
        document = await self.collection.find_one({"id": user_id})
        return UserSchema.model_validate(document) if document else None

    async def validate_user(self, user_id: str) -> UserValidationSchema:
        """Answer whether user_id refers to an existing user"""
        user = await self.get_user(user_id)
        if user is None:
            return UserValidationSchema(valid=False, user_id=user_id)
        return UserValidationSchema(valid=True, user_id=user_id, name=user.name)
