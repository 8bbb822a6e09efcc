"""
Gateway Router
Maps public /api/* paths onto backend services and forwards requests

Matching is longest-prefix on whole path segments, so /api/users matches
/api/users and /api/users/42 but not /api/usersX. The rest of the path and
the query string are kept; only the prefix is rewritten.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

import httpx
from fastapi import Request, Response

from shared.utils.errors import PayloadTooLargeError, ServiceUnavailableError, ValidationError
from shared.utils.logger import mask_sensitive

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 1024 * 1024

# Per-connection headers that must not be forwarded (RFC 7230 6.1), plus the
# ones the outgoing request recomputes
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
})

# httpx hands back decoded bodies, so the upstream encoding no longer applies
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Set by forward_headers itself rather than copied from the client
FORWARDING_HEADERS = frozenset({
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-proto",
    "x-request-id",
})


@dataclass(frozen=True)
class RouteTarget:
    """One prefix of the public API and the backend that serves it"""

    name: str
    prefix: str
    base_url: str
    rewrite_to: str
    timeout_ms: int
    endpoints: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name.replace("-", " ").title()

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    def rewrite(self, path: str) -> str:
        return self.rewrite_to + path[len(self.prefix):]

    def upstream_url(self, path: str, query: str = "") -> str:
        url = self.base_url.rstrip("/") + self.rewrite(path)
        return f"{url}?{query}" if query else url


def build_route_table(config) -> List[RouteTarget]:
    """Route table for the gateway configuration"""
    return [
        RouteTarget(
            name="user-service",
            prefix="/api/users",
            base_url=config.user_service_url,
            rewrite_to="/users",
            timeout_ms=config.user_route_timeout_ms,
            endpoints=("/users", "/users/:id", "/users/:id/validate")
        ),
        RouteTarget(
            name="task-service",
            prefix="/api/tasks",
            base_url=config.task_service_url,
            rewrite_to="/tasks",
            timeout_ms=config.task_route_timeout_ms,
            endpoints=("/tasks", "/tasks/user/:userId")
        ),
        RouteTarget(
            name="notification-service",
            prefix="/api/notifications",
            base_url=config.notification_service_url,
            rewrite_to="/notifications",
            timeout_ms=config.notification_route_timeout_ms,
            endpoints=("/notifications", "/notifications/user/:userId")
        ),
    ]


def _is_json(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _too_large(max_bytes: int) -> PayloadTooLargeError:
    return PayloadTooLargeError(
        f"Request body exceeds {max_bytes} bytes",
        details={"maxBytes": max_bytes}
    )


async def read_body(request: Request, max_bytes: int = DEFAULT_MAX_BODY_BYTES) -> bytes:
    """Read the body, refusing it as soon as it passes max_bytes"""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise _too_large(max_bytes)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise _too_large(max_bytes)
    return bytes(body)


async def prepare_body(request: Request, max_bytes: int = DEFAULT_MAX_BODY_BYTES) -> Tuple[bytes, Optional[Any]]:
    """
    Read the request body for forwarding

    JSON bodies are parsed and re-serialized, so what the backend receives
    is well-formed and its length is the length of the new bytes.

    Returns:
        (content, parsed JSON or None)

    Raises:
        PayloadTooLargeError: body larger than max_bytes
        ValidationError: malformed JSON
    """
    raw = await read_body(request, max_bytes)
    if request.method not in BODY_METHODS or not raw or not _is_json(request.headers.get("content-type")):
        return raw, None

    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise ValidationError("Malformed JSON body", details={"reason": str(e)}) from e

    content = json.dumps(parsed, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return content, parsed


def forward_headers(request: Request, content: bytes) -> List[Tuple[str, str]]:
    """Outgoing header pairs; repeated client headers are kept as repeats"""
    headers = [
        (key, value)
        for key, value in request.headers.items()
        if key.lower() not in HOP_BY_HOP_HEADERS and key.lower() not in FORWARDING_HEADERS
    ]
    if content:
        headers.append(("content-length", str(len(content))))

    client_host = request.client.host if request.client else None
    prior = request.headers.get("x-forwarded-for")
    if client_host:
        headers.append(("x-forwarded-for", f"{prior}, {client_host}" if prior else client_host))
    elif prior:
        headers.append(("x-forwarded-for", prior))
    if request.headers.get("host"):
        headers.append(("x-forwarded-host", request.headers["host"]))
    headers.append(("x-forwarded-proto", request.url.scheme))

    request_id = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    if request_id:
        headers.append(("x-request-id", request_id))
    return headers


def relay_response(upstream: httpx.Response) -> Response:
    """Backend response as a gateway response, repeated headers intact"""
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for key, value in upstream.headers.multi_items():
        if key.lower() not in RESPONSE_SKIP_HEADERS:
            response.headers.append(key, value)
    return response


class GatewayRouter:
    """Prefix routing plus forwarding over a shared httpx client"""

    def __init__(
        self,
        routes: Iterable[RouteTarget],
        client: httpx.AsyncClient,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    ):
        # Longest prefix first so a nested prefix wins over its parent
        self.routes = sorted(routes, key=lambda r: len(r.prefix), reverse=True)
        self.client = client
        self.max_body_bytes = max_body_bytes

    def match(self, path: str) -> Optional[RouteTarget]:
        for route in self.routes:
            if route.matches(path):
                return route
        return None

    async def forward(self, route: RouteTarget, request: Request) -> Response:
        """
        Forward a request to the route's backend

        The backend's status and body are relayed unchanged. The whole
        exchange is bounded by the route timeout; exceeding it, or failing
        to connect, answers 503 naming the service.
        """
        content, parsed = await prepare_body(request, self.max_body_bytes)
        url = route.upstream_url(request.url.path, request.url.query)
        headers = forward_headers(request, content)

        if parsed is not None:
            logger.debug(f"{request.method} {request.url.path} body={mask_sensitive(parsed)}")

        try:
            upstream = await asyncio.wait_for(
                self.client.request(
                    request.method,
                    url,
                    headers=headers,
                    content=content or None,
                    timeout=route.timeout
                ),
                timeout=route.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"⏱️ {route.name} did not answer {request.method} {url} within {route.timeout_ms}ms")
            raise ServiceUnavailableError(
                f"{route.display_name} Unavailable",
                details={"service": route.name, "reason": "timeout", "timeoutMs": route.timeout_ms}
            )
        except httpx.RequestError as e:
            logger.error(f"❌ Proxy error for {route.name}: {type(e).__name__}: {e}")
            raise ServiceUnavailableError(
                f"{route.display_name} Unavailable",
                details={"service": route.name, "reason": "unreachable"}
            )

        return relay_response(upstream)
