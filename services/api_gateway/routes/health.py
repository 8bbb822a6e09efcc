"""
Health Check Routes
Gateway liveness, aggregated backend health and connectivity diagnostics
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from shared.schemas.base import utc_now
from services.api_gateway.services.health_aggregator import connectivity_targets, health_targets

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Gateway's own health; does not touch the backends"""
    config = request.app.state.config
    return {
        "status": "OK",
        "timestamp": utc_now().isoformat(),
        "service": config.service_name,
        "version": config.service_version,
        "uptime": request.app.state.uptime.seconds,
    }


@router.get("/api/health/all")
async def health_all(request: Request):
    """
    Probe every backend /health concurrently

    200 when all backends are healthy, 503 otherwise.
    """
    config = request.app.state.config
    aggregate = await request.app.state.health_aggregator.check_all(health_targets(config))

    content = {
        "gateway": {
            "status": "healthy",
            "service": config.service_name,
            "version": config.service_version,
            "uptime": request.app.state.uptime.seconds,
        },
        **aggregate.to_dict(),
        "timestamp": utc_now().isoformat(),
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if aggregate.healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content
    )


@router.get("/api/debug/connectivity")
async def debug_connectivity(request: Request):
    """Reachability of each backend root URL, with error details"""
    config = request.app.state.config
    aggregate = await request.app.state.health_aggregator.check_all(connectivity_targets(config))

    results = {}
    for result in aggregate.results:
        entry = {
            "url": result.url,
            "status": "reachable" if result.reachable else "unreachable",
            "latencyMs": round(result.latency_ms, 1),
        }
        if result.status_code is not None:
            entry["statusCode"] = result.status_code
        if result.error is not None:
            entry["error"] = result.error
        results[result.service] = entry

    return {
        "debug": "Connectivity check",
        "results": results,
        "timestamp": utc_now().isoformat(),
    }
