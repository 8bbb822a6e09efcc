"""
Health Aggregator
Probes every backend concurrently and folds the results into one report

A slow or dead backend costs at most its own probe timeout; the other
probes run alongside it, so a full check takes about as long as the slowest
single probe, never the sum.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthTarget:
    name: str
    url: str
    timeout_ms: int = 5000

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000


@dataclass
class HealthProbeResult:
    service: str
    url: str
    reachable: bool
    healthy: bool
    latency_ms: float
    status_code: Optional[int] = None
    error: Optional[str] = None
    data: Optional[Any] = None

    @property
    def status(self) -> str:
        return "healthy" if self.healthy else "unhealthy"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "service": self.service,
            "url": self.url,
            "status": self.status,
            "reachable": self.reachable,
            "latencyMs": round(self.latency_ms, 1),
        }
        if self.status_code is not None:
            result["statusCode"] = self.status_code
        if self.error is not None:
            result["error"] = self.error
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class AggregateHealth:
    overall_status: str
    results: List[HealthProbeResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.overall_status == "healthy"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallStatus": self.overall_status,
            "services": {result.service: result.to_dict() for result in self.results},
        }


class HealthAggregator:
    """Concurrent health probes over a shared httpx client"""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def probe(self, target: HealthTarget) -> HealthProbeResult:
        """Probe one target; never raises"""
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            response = await asyncio.wait_for(
                self.client.get(target.url, timeout=target.timeout),
                timeout=target.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"⏱️ Health probe for {target.name} timed out after {target.timeout_ms}ms")
            return HealthProbeResult(
                service=target.name, url=target.url, reachable=False, healthy=False,
                latency_ms=elapsed(), error="timeout"
            )
        except httpx.RequestError as e:
            logger.warning(f"❌ Health probe for {target.name} failed: {type(e).__name__}: {e}")
            return HealthProbeResult(
                service=target.name, url=target.url, reachable=False, healthy=False,
                latency_ms=elapsed(), error=str(e) or type(e).__name__
            )

        data = None
        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                data = response.json()
            except ValueError:
                data = None

        return HealthProbeResult(
            service=target.name,
            url=target.url,
            reachable=True,
            healthy=200 <= response.status_code < 300,
            latency_ms=elapsed(),
            status_code=response.status_code,
            data=data
        )

    async def check_all(self, targets: Sequence[HealthTarget]) -> AggregateHealth:
        """Probe all targets concurrently; healthy only if every probe is"""
        outcomes = await asyncio.gather(
            *(self.probe(target) for target in targets),
            return_exceptions=True
        )

        results: List[HealthProbeResult] = []
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(f"Health probe for {target.name} crashed: {outcome}")
                outcome = HealthProbeResult(
                    service=target.name, url=target.url, reachable=False, healthy=False,
                    latency_ms=0.0, error=str(outcome) or type(outcome).__name__
                )
            results.append(outcome)

        overall = "healthy" if all(result.healthy for result in results) else "unhealthy"
        return AggregateHealth(overall_status=overall, results=results)


def health_targets(config) -> List[HealthTarget]:
    timeout_ms = config.health_probe_timeout_ms
    return [
        HealthTarget("user-service", f"{config.user_service_url}/health", timeout_ms),
        HealthTarget("task-service", f"{config.task_service_url}/health", timeout_ms),
        HealthTarget("notification-service", f"{config.notification_service_url}/health", timeout_ms),
    ]


def connectivity_targets(config) -> List[HealthTarget]:
    timeout_ms = config.connectivity_probe_timeout_ms
    return [
        HealthTarget("user-service", f"{config.user_service_url}/", timeout_ms),
        HealthTarget("task-service", f"{config.task_service_url}/", timeout_ms),
        HealthTarget("notification-service", f"{config.notification_service_url}/", timeout_ms),
    ]
