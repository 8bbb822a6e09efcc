"""
Gateway test helpers
"""

from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from services.api_gateway.main import create_app
from services.api_gateway.services.health_aggregator import HealthAggregator
from services.api_gateway.services.router import GatewayRouter, build_route_table
from services.api_gateway.utils.config import GatewayConfig


def gateway_config(**overrides) -> GatewayConfig:
    settings = {
        "user_service_url": "http://user-service:3001",
        "task_service_url": "http://task-service:3002",
        "notification_service_url": "http://notification-service:3003",
    }
    settings.update(overrides)
    return GatewayConfig(**settings)


@pytest.fixture
def make_gateway():
    """Build a gateway TestClient whose backends are served by handler"""

    def factory(handler, **overrides):
        config = gateway_config(**overrides)
        with patch("services.api_gateway.main.get_gateway_config", return_value=config):
            app = create_app()
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app.state.gateway_router = GatewayRouter(build_route_table(config), http_client, config.max_body_bytes)
        app.state.health_aggregator = HealthAggregator(http_client)
        return TestClient(app, raise_server_exceptions=False)

    return factory
