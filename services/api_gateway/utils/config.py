"""
Configuration Management
Environment-based settings for the API gateway
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseSettings):
    """Gateway Configuration"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = "api-gateway"
    service_version: str = "1.0.0"
    environment: str = "development"
    port: int = 3000

    # Backend base URLs
    user_service_url: str = "http://localhost:3001"
    task_service_url: str = "http://localhost:3002"
    notification_service_url: str = "http://localhost:3003"

    # Per-route proxy timeouts
    user_route_timeout_ms: int = 10000
    task_route_timeout_ms: int = 5000
    notification_route_timeout_ms: int = 5000

    # Probes
    health_probe_timeout_ms: int = 5000
    connectivity_probe_timeout_ms: int = 3000

    # Largest request body the gateway will buffer and forward
    max_body_bytes: int = 1048576

    # Rate limiting (per client address)
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 1000

    # HTTP client pool
    max_connections: int = 200
    max_keepalive_connections: int = 50

    cors_allowed_origins: str = (
        "http://localhost:3000,http://localhost:3001,http://localhost:3002,http://localhost:3003"
    )

    @field_validator(
        'user_route_timeout_ms', 'task_route_timeout_ms', 'notification_route_timeout_ms',
        'health_probe_timeout_ms', 'connectivity_probe_timeout_ms'
    )
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('Timeouts must be positive')
        return v

    @field_validator('max_body_bytes')
    @classmethod
    def validate_max_body_bytes(cls, v):
        if v <= 0:
            raise ValueError('max_body_bytes must be positive')
        return v

    @field_validator('user_service_url', 'task_service_url', 'notification_service_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


_gateway_config: Optional[GatewayConfig] = None


def get_gateway_config() -> GatewayConfig:
    """Get gateway configuration instance"""
    global _gateway_config
    if _gateway_config is None:
        _gateway_config = GatewayConfig()
    return _gateway_config
