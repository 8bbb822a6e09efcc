"""
Health Check Routes
"""

from fastapi import APIRouter, Request

from shared.utils.health import health_payload

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health check, including broker and consumer state"""
    state = request.app.state
    consumer = getattr(state, "consumer", None)
    return health_payload(
        service=state.config.service_name,
        version=state.config.service_version,
        uptime=state.uptime,
        database=state.store.status,
        rabbitmq=state.broker.status,
        consumer=consumer.status if consumer else "disabled",
        consumerStats=dict(consumer.stats) if consumer else {},
    )
