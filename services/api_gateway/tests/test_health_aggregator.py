"""
Tests for concurrent backend health probes
"""

import asyncio
import time

import httpx
import pytest

from services.api_gateway.services.health_aggregator import HealthAggregator, HealthTarget


async def backend(request):
    host = request.url.host
    if host == "fast":
        await asyncio.sleep(0.05)
        return httpx.Response(200, json={"status": "OK"})
    if host == "slow":
        await asyncio.sleep(2)
        return httpx.Response(200, json={"status": "OK"})
    if host == "broken":
        return httpx.Response(500, json={"error": {"code": "INTERNAL_ERROR"}})
    raise httpx.ConnectError("Name or service not known", request=request)


@pytest.fixture
async def aggregator():
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    yield HealthAggregator(client)
    await client.aclose()


class TestCheckAll:

    @pytest.mark.asyncio
    async def test_slow_backend_costs_only_its_timeout(self, aggregator):
        targets = [
            HealthTarget("a", "http://fast/health", timeout_ms=1000),
            HealthTarget("b", "http://slow/health", timeout_ms=200),
        ]

        start = time.monotonic()
        result = await aggregator.check_all(targets)
        elapsed = time.monotonic() - start

        a, b = result.results
        assert 0.15 <= elapsed < 0.6
        assert a.healthy and a.reachable and a.status_code == 200
        assert not b.healthy and not b.reachable
        assert b.error == "timeout"
        assert result.overall_status == "unhealthy"

    @pytest.mark.asyncio
    async def test_all_healthy(self, aggregator):
        targets = [HealthTarget(name, "http://fast/health") for name in ("a", "b", "c")]

        result = await aggregator.check_all(targets)

        assert result.overall_status == "healthy"
        assert result.healthy
        assert result.results[0].data == {"status": "OK"}

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self, aggregator):
        targets = [HealthTarget(f"svc-{i}", "http://fast/health") for i in range(5)]

        start = time.monotonic()
        await aggregator.check_all(targets)

        assert time.monotonic() - start < 0.2

    @pytest.mark.asyncio
    async def test_error_status_is_reachable_but_unhealthy(self, aggregator):
        result = await aggregator.check_all([HealthTarget("x", "http://broken/health")])

        probe = result.results[0]
        assert probe.reachable is True
        assert probe.healthy is False
        assert probe.to_dict()["statusCode"] == 500

    @pytest.mark.asyncio
    async def test_connection_failure_is_unreachable(self, aggregator):
        result = await aggregator.check_all([HealthTarget("x", "http://nowhere/health")])

        probe = result.to_dict()["services"]["x"]
        assert probe["reachable"] is False
        assert probe["status"] == "unhealthy"
        assert "Name or service not known" in probe["error"]

    @pytest.mark.asyncio
    async def test_repeated_checks_agree(self, aggregator):
        targets = [
            HealthTarget("a", "http://fast/health"),
            HealthTarget("b", "http://broken/health"),
        ]

        first = await aggregator.check_all(targets)
        second = await aggregator.check_all(targets)

        assert first.overall_status == second.overall_status
        assert [r.healthy for r in first.results] == [r.healthy for r in second.results]

    @pytest.mark.asyncio
    async def test_no_targets_is_healthy(self, aggregator):
        assert (await aggregator.check_all([])).overall_status == "healthy"
