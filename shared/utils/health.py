"""
Health payload helpers shared by the backend services
"""

import time
from typing import Any, Dict, Optional

from shared.schemas.base import utc_now


class Uptime:
    """Process uptime, measured from construction"""

    def __init__(self):
        self.started = time.monotonic()

    @property
    def seconds(self) -> float:
        return round(time.monotonic() - self.started, 3)


def health_payload(
    service: str,
    version: str,
    uptime: Uptime,
    database: str,
    rabbitmq: Optional[str] = None,
    **extra: Any
) -> Dict[str, Any]:
    """
    Build the /health body every backend returns

    status stays "OK" while the process serves requests; dependency states
    are reported alongside so the gateway can aggregate them.
    """
    payload: Dict[str, Any] = {
        "status": "OK",
        "timestamp": utc_now().isoformat(),
        "service": service,
        "version": version,
        "database": database,
        "uptime": uptime.seconds,
    }
    if rabbitmq is not None:
        payload["rabbitmq"] = rabbitmq
    payload.update(extra)
    return payload
