"""
User Service Client
HTTP client used to validate user references before a task is accepted

Lifecycle:
    - Call start() during app startup (FastAPI lifespan)
    - Call stop() during app shutdown
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from shared.schemas.user import UserValidationSchema
from shared.utils.errors import InvalidReferenceError

logger = logging.getLogger(__name__)


class UserServiceClient:
    """HTTP client for user service validation calls"""

    MAX_CONNECTIONS = 50
    MAX_KEEPALIVE = 10
    KEEPALIVE_EXPIRY = 5.0

    def __init__(self, base_url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize the shared HTTP client"""
        if self._client is not None:
            logger.warning("UserServiceClient already started")
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            limits=httpx.Limits(
                max_connections=self.MAX_CONNECTIONS,
                max_keepalive_connections=self.MAX_KEEPALIVE,
                keepalive_expiry=self.KEEPALIVE_EXPIRY
            ),
            transport=self._transport
        )
        logger.info(f"UserServiceClient started: base_url={self.base_url}, timeout={self.timeout}s")

    async def stop(self):
        """Close the HTTP client and release resources"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("UserServiceClient stopped")

    async def validate_user(self, user_id: str) -> UserValidationSchema:
        """
        Confirm that user_id refers to an existing user

        The whole call, including connection setup, is bounded by timeout.

        Raises:
            InvalidReferenceError: the user does not exist, or the user
                service could not answer in time
        """
        if self._client is None:
            await self.start()

        endpoint = f"/users/{quote(user_id, safe='')}/validate"
        try:
            response = await asyncio.wait_for(self._client.get(endpoint), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"❌ Timed out validating user {user_id}")
            raise InvalidReferenceError("Could not validate user", details={"userId": user_id, "reason": "timeout"})
        except httpx.RequestError as e:
            logger.error(f"❌ Failed to validate user {user_id}: {e}")
            raise InvalidReferenceError("Could not validate user", details={"userId": user_id, "reason": "unreachable"})

        if response.status_code == 404:
            raise InvalidReferenceError("Invalid user ID", details={"userId": user_id})
        if response.status_code >= 400:
            logger.error(f"❌ User service answered {response.status_code} validating {user_id}")
            raise InvalidReferenceError(
                "Could not validate user",
                details={"userId": user_id, "reason": f"HTTP {response.status_code}"}
            )

        try:
            result = UserValidationSchema.model_validate(response.json())
        except ValueError:
            raise InvalidReferenceError("Could not validate user", details={"userId": user_id, "reason": "bad response"})

        if not result.valid:
            raise InvalidReferenceError("Invalid user ID", details={"userId": user_id})
        return result
