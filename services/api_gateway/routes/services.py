"""
Service Directory Routes
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/api/services")
async def list_services(request: Request):
    """Backend services behind the gateway and the paths they serve"""
    routes = request.app.state.gateway_router.routes
    config = request.app.state.config
    return {
        "services": {
            route.name: {
                "url": route.base_url,
                "prefix": route.prefix,
                "timeoutMs": route.timeout_ms,
                "endpoints": list(route.endpoints),
            }
            for route in sorted(routes, key=lambda r: r.prefix)
        },
        "gateway": {
            "version": config.service_version,
            "uptime": request.app.state.uptime.seconds,
        },
    }
