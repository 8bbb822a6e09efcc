"""
Health Check Routes
"""

from fastapi import APIRouter, Request

from shared.utils.health import health_payload

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health check"""
    config = request.app.state.config
    return health_payload(
        service=config.service_name,
        version=config.service_version,
        uptime=request.app.state.uptime,
        database=request.app.state.store.status,
    )
