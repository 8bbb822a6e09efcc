"""
Error taxonomy for the task platform

Every service raises these exceptions at the boundary that discovers the
problem; register_exception_handlers() turns them into the uniform JSON
error envelope returned to clients.
"""

import os
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.schemas.base import utc_now

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Missing or invalid request fields"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Validation Error"


class InvalidReferenceError(ServiceError):
    """A cross-service reference (e.g. a user id) does not resolve"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_REFERENCE"
    default_message = "Invalid reference"


class DuplicateKeyError(ServiceError):
    """A unique index rejected the document"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "DUPLICATE_KEY"
    default_message = "Duplicate key"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class PayloadTooLargeError(ServiceError):
    """Request body over the configured size limit"""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    code = "PAYLOAD_TOO_LARGE"
    default_message = "Request body too large"


class ServiceUnavailableError(ServiceError):
    """A backend or the broker is unreachable or timed out (retriable)"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service Unavailable"


class InternalError(ServiceError):
    """Unexpected persistence or parse failure"""


class BrokerFatalError(Exception):
    """The broker bootstrap exhausted its retry budget; the process must exit"""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to connect to broker after {attempts} attempts: {last_error}")


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


def error_body(
    request: Request,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """
    Build the uniform error envelope

    Diagnostic fields (details, stack) are only included outside production.
    """
    body: Dict[str, Any] = {
        "code": code,
        "message": message,
        "requestId": _request_id(request),
        "timestamp": utc_now().isoformat(),
    }
    if not is_production():
        if details:
            body["details"] = details
        if exc is not None:
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {"error": body}


def register_exception_handlers(app: FastAPI) -> None:
    """Install the platform exception handlers on a FastAPI app"""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"🚨 [{_request_id(request)}] {exc.code}: {exc.message} ({request.method} {request.url.path})")
        else:
            logger.warning(f"[{_request_id(request)}] {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, exc.code, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        missing = [
            ".".join(str(part) for part in err["loc"] if part != "body")
            for err in exc.errors()
            if err.get("type") == "missing"
        ]
        message = f"Missing required fields: {', '.join(missing)}" if missing else "Validation Error"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(request, ValidationError.code, message, {"errors": _jsonable_errors(exc)}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = "ROUTE_NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else f"HTTP_{exc.status_code}"
        content = error_body(request, code, str(exc.detail))
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            content["error"]["path"] = request.url.path
            content["error"]["method"] = request.method
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"🚨 [{_request_id(request)}] Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(request, InternalError.code, InternalError.default_message, exc=exc),
        )


def _jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
