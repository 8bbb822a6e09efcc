"""
API Gateway - FastAPI Application
Single entry point for the task platform
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.utils.errors import register_exception_handlers
from shared.utils.health import Uptime
from shared.utils.logger import init_logging
from services.api_gateway.routes import health, proxy, services
from services.api_gateway.services.health_aggregator import HealthAggregator
from services.api_gateway.services.router import GatewayRouter, build_route_table
from services.api_gateway.utils.config import get_gateway_config
from services.api_gateway.utils.middleware import FixedWindowRateLimiter, install_middleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    config = app.state.config
    logger.info("🚀 API Gateway starting up...")

    client = httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_keepalive_connections
        ),
        follow_redirects=False
    )
    app.state.http_client = client
    app.state.gateway_router = GatewayRouter(build_route_table(config), client, config.max_body_bytes)
    app.state.health_aggregator = HealthAggregator(client)

    for route in app.state.gateway_router.routes:
        logger.info(f"🔀 {route.prefix} -> {route.base_url}{route.rewrite_to} ({route.timeout_ms}ms)")

    yield

    logger.info("API Gateway shutting down...")
    await client.aclose()


def create_app() -> FastAPI:
    config = get_gateway_config()

    app = FastAPI(
        title="API Gateway",
        description="Routes client requests to the task platform services",
        version=config.service_version,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.uptime = Uptime()

    rate_limiter = None
    if config.rate_limit_enabled:
        rate_limiter = FixedWindowRateLimiter(
            config.rate_limit_max_requests, config.rate_limit_window_seconds
        )
    app.state.rate_limiter = rate_limiter
    install_middleware(app, rate_limiter)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(services.router, tags=["Services"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Task Platform API Gateway",
            "version": config.service_version,
            "endpoints": {
                "health": "/health",
                "healthAll": "/api/health/all",
                "services": "/api/services",
                "users": "/api/users",
                "tasks": "/api/tasks",
                "notifications": "/api/notifications",
            }
        }

    # Catch-all last so the gateway's own /api/* endpoints take precedence
    app.include_router(proxy.router, tags=["Proxy"])

    return app


init_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_gateway_config().port)
