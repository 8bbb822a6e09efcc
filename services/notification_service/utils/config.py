"""
Configuration Management
Environment-based settings for the notification service
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application Configuration"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = "notification-service"
    service_version: str = "1.0.0"
    environment: str = "development"
    port: int = 3003
    notifications_collection: str = "notifications"
    cors_allowed_origins: str = "http://localhost:3000"

    # Event consumer
    consumer_enabled: bool = True
    consumer_receive_timeout: float = 1.0
    consumer_retry_delay: float = 1.0
    consumer_unavailable_backoff: float = 1.0

    # The standalone worker bootstraps with more patience than the API
    worker_max_retries: int = 10

    @field_validator('consumer_receive_timeout')
    @classmethod
    def validate_receive_timeout(cls, v):
        if v <= 0:
            raise ValueError('consumer_receive_timeout must be positive')
        return v


_app_config: Optional[AppConfig] = None


def get_app_config() -> AppConfig:
    """Get application configuration instance"""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig()
    return _app_config
