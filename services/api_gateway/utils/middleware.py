"""
Gateway HTTP middleware
"""

import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shared.utils.errors import error_body

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Paths that are never rate limited
RATE_LIMIT_EXEMPT = ("/health",)

# Added to every gateway response unless the backend already set them
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(0, int(self.reset_at - time.time()) + 1)

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, int(self.reset_at - time.time()))),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows of window_seconds"""

    def __init__(self, max_requests: int, window_seconds: float):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str, now: Optional[float] = None) -> RateLimitResult:
        now = time.time() if now is None else now
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        reset_at = window_start + self.window_seconds
        if count >= self.max_requests:
            return RateLimitResult(False, self.max_requests, 0, reset_at)

        count += 1
        self._windows[key] = (window_start, count)
        self._evict(now)
        return RateLimitResult(True, self.max_requests, self.max_requests - count, reset_at)

    def _evict(self, now: float) -> None:
        if len(self._windows) < 10000:
            return
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in expired:
            del self._windows[key]


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def install_middleware(app: FastAPI, rate_limiter: Optional[FixedWindowRateLimiter] = None) -> None:
    """
    Register the gateway's HTTP middleware

    Starlette runs the last registered middleware first, so the request id
    is assigned before the rate limiter can reject anything, and security
    headers land on every response, rejections included.
    """

    if rate_limiter is not None:
        @app.middleware("http")
        async def rate_limit(request: Request, call_next):
            if request.url.path in RATE_LIMIT_EXEMPT:
                return await call_next(request)

            result = rate_limiter.hit(client_address(request))
            if not result.allowed:
                logger.warning(
                    "Rate limit exceeded",
                    client_ip=client_address(request),
                    path=request.url.path,
                    request_id=request.state.request_id
                )
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content=error_body(
                        request,
                        "RATE_LIMITED",
                        "Too many requests from this IP, please try again later."
                    ),
                    headers=result.headers()
                )

            response = await call_next(request)
            for key, value in result.headers().items():
                response.headers[key] = value
            return response

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.time()

        logger.info(
            "Request received",
            method=request.method,
            path=request.url.path,
            query=request.url.query or None,
            client_ip=client_address(request),
            request_id=request_id
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start) * 1000, 1),
            request_id=request_id
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for key, value in SECURITY_HEADERS.items():
            response.headers.setdefault(key, value)
        return response
