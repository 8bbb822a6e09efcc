"""
User Service - FastAPI Application
User registration and validation for the task platform
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.utils.config import get_db_config
from shared.utils.database import DocumentStore
from shared.utils.errors import register_exception_handlers
from shared.utils.health import Uptime
from shared.utils.logger import init_logging
from services.user_service.routes import health, users
from services.user_service.services.user_service import UserService
from services.user_service.utils.config import get_app_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("🚀 User Service starting up...")

    db_config = get_db_config()
    store = DocumentStore(
        db_config.database_url,
        min_size=db_config.db_pool_min_size,
        max_size=db_config.db_pool_max_size,
        command_timeout=db_config.db_command_timeout
    )
    await store.initialize()

    user_service = UserService(store.collection(app.state.config.users_collection))
    await user_service.ensure_indexes()

    app.state.store = store
    app.state.user_service = user_service
    logger.info("User Service startup complete")

    yield

    logger.info("User Service shutting down...")
    await store.close()


def create_app() -> FastAPI:
    config = get_app_config()

    app = FastAPI(
        title="User Service",
        description="User registration and validation for the task platform",
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
    app.include_router(users.router, prefix="/users", tags=["User Management"])

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
