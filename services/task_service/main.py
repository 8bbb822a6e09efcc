"""
Task Service - FastAPI Application
Task management; emits task_created events to the notification queue
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.utils.broker import BrokerConnection
from shared.utils.config import get_broker_config, get_db_config
from shared.utils.database import DocumentStore
from shared.utils.errors import register_exception_handlers
from shared.utils.health import Uptime
from shared.utils.logger import init_logging
from services.task_service.routes import health, tasks
from services.task_service.services.task_service import TaskService
from services.task_service.utils.config import get_app_config
from services.task_service.utils.user_client import UserServiceClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler

    A BrokerFatalError from the bootstrap propagates and aborts startup;
    the service does not run without its broker.
    """
    config = app.state.config
    broker_config = get_broker_config()
    db_config = get_db_config()
    logger.info("🚀 Task Service starting up...")
    broker_config.log_config()

    store = DocumentStore(
        db_config.database_url,
        min_size=db_config.db_pool_min_size,
        max_size=db_config.db_pool_max_size,
        command_timeout=db_config.db_command_timeout
    )
    await store.initialize()

    broker = BrokerConnection(
        broker_config.rabbitmq_url,
        queues=(broker_config.task_queue,),
        reconnect_delay=broker_config.broker_reconnect_delay,
        monitor_interval=broker_config.broker_monitor_interval,
        connect_timeout=broker_config.broker_connect_timeout,
        heartbeat=broker_config.broker_heartbeat
    )
    await broker.connect(
        max_retries=broker_config.broker_max_retries,
        base_delay=broker_config.broker_retry_delay
    )

    user_client = UserServiceClient(config.user_service_url, timeout=config.user_validation_timeout)
    await user_client.start()

    task_service = TaskService(
        store.collection(config.tasks_collection),
        broker,
        user_client,
        queue_name=broker_config.task_queue
    )
    await task_service.ensure_indexes()

    app.state.store = store
    app.state.broker = broker
    app.state.task_service = task_service
    logger.info(f"📊 Task Service ready on port {config.port}")

    yield

    logger.info("Task Service shutting down...")
    await user_client.stop()
    await broker.close()
    await store.close()


def create_app() -> FastAPI:
    config = get_app_config()

    app = FastAPI(
        title="Task Service",
        description="Task management for the task platform",
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
    app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])

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
