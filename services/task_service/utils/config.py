"""
Configuration Management
Environment-based settings for the task service
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application Configuration"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = "task-service"
    service_version: str = "1.0.0"
    environment: str = "development"
    port: int = 3002
    tasks_collection: str = "tasks"
    cors_allowed_origins: str = "http://localhost:3000"

    # User validation collaborator
    user_service_url: str = "http://localhost:3001"
    user_validation_timeout: float = 5.0

    @field_validator('user_validation_timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('user_validation_timeout must be positive')
        return v


_app_config: Optional[AppConfig] = None


def get_app_config() -> AppConfig:
    """Get application configuration instance"""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig()
    return _app_config
