"""
Notification Service - FastAPI Application
Notification API plus the task_created event consumer
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.utils.config import get_broker_config, get_db_config
from shared.utils.errors import register_exception_handlers
from shared.utils.health import Uptime
from shared.utils.logger import init_logging
from services.notification_service.bootstrap import build_components
from services.notification_service.routes import health, notifications
from services.notification_service.utils.config import get_app_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    config = app.state.config
    broker_config = get_broker_config()
    logger.info("🚀 Notification Service starting up...")
    broker_config.log_config()

    components = await build_components(
        config, broker_config, get_db_config(), max_retries=broker_config.broker_max_retries
    )
    app.state.store = components.store
    app.state.broker = components.broker
    app.state.notification_service = components.notification_service

    consumer_task = None
    if config.consumer_enabled:
        app.state.consumer = components.consumer
        consumer_task = asyncio.create_task(components.consumer.run())

    yield

    logger.info("🔔 Notification Service shutting down...")
    components.consumer.stop()
    if consumer_task is not None:
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
    await components.close()


def create_app() -> FastAPI:
    config = get_app_config()

    app = FastAPI(
        title="Notification Service",
        description="Task notifications for the task platform",
        version=config.service_version,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.uptime = Uptime()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in config.cors_allowed_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": config.service_name,
            "version": config.service_version,
            "status": "running"
        }

    return app


init_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_app_config().port)
