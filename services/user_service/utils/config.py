"""
Configuration Management
Environment-based settings for the user service
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application Configuration"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = "user-service"
    service_version: str = "1.0.0"
    environment: str = "development"
    port: int = 3001
    users_collection: str = "users"
    cors_allowed_origins: str = "http://localhost:3000"


_app_config: Optional[AppConfig] = None


def get_app_config() -> AppConfig:
    """Get application configuration instance"""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig()
    return _app_config
