"""
Logging utilities for the task platform

Provides centralized logging configuration and utilities.
"""

import os
import logging
import logging.config
from copy import deepcopy
from typing import Optional, Dict, Any
from pathlib import Path

import structlog
import yaml

# Default logging configuration
DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'detailed': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'json': {
            'format': '{"timestamp": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "module": "%(module)s", "function": "%(funcName)s", "line": %(lineno)d, "message": "%(message)s"}',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'default',
            'stream': 'ext://sys.stdout'
        }
    },
    'loggers': {
        '': {
            'level': 'INFO',
            'handlers': ['console'],
        },
        'kombu': {
            'level': 'WARNING',
        },
        'amqp': {
            'level': 'WARNING',
        },
    }
}


def load_logging_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a dictConfig mapping

    Looks at config_path first, then shared/configs/logging.yml, then falls
    back to DEFAULT_LOGGING_CONFIG.
    """
    candidates = []
    if config_path:
        candidates.append(Path(config_path))
    candidates.append(Path(__file__).parent.parent / "configs" / "logging.yml")

    for path in candidates:
        if not path.exists():
            continue
        try:
            with open(path, 'r') as f:
                config = yaml.safe_load(f)
            if config:
                return config
        except (OSError, yaml.YAMLError) as e:
            print(f"Failed to load logging config from {path}: {e}")

    return deepcopy(DEFAULT_LOGGING_CONFIG)


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None
) -> Dict[str, Any]:
    """
    Setup logging configuration

    Args:
        config_path: Path to a YAML logging configuration file
        log_level: Override log level
        log_format: Override log format ('default', 'detailed', 'json')

    Returns:
        The configuration that was applied
    """
    config = load_logging_config(config_path)

    # Apply environment-specific overrides
    environment = os.getenv('ENVIRONMENT', 'development')
    env_config = config.pop(environment, None) if environment in config else None
    if env_config:
        if 'handlers' in env_config:
            config['handlers'].update(env_config['handlers'])
        if 'loggers' in env_config:
            config['loggers'].update(env_config['loggers'])

    # Drop any other environment sections; dictConfig rejects unknown keys
    for key in ('development', 'production', 'testing', 'staging'):
        config.pop(key, None)

    if log_level:
        log_level = log_level.upper()
        for name, logger_config in config.get('loggers', {}).items():
            if name in ('kombu', 'amqp'):
                continue
            logger_config['level'] = log_level
        for handler_config in config.get('handlers', {}).values():
            handler_config['level'] = log_level

    if log_format and log_format in config.get('formatters', {}):
        for handler_config in config.get('handlers', {}).values():
            handler_config['formatter'] = log_format

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        print(f"Failed to configure logging: {e}")
        logging.basicConfig(
            level=getattr(logging, log_level or 'INFO', logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    return config


def configure_structlog(json_output: bool = True) -> None:
    """Route structlog through stdlib logging so both share handlers and levels"""
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = ('password', 'token', 'secret')


def mask_sensitive(body: Any) -> Any:
    """Return a copy of a request body with sensitive fields hidden"""
    if not isinstance(body, dict):
        return body
    masked = dict(body)
    for field in SENSITIVE_FIELDS:
        if field in masked:
            masked[field] = '[HIDDEN]'
    return masked


def init_logging() -> None:
    """Initialize logging with environment variables"""
    config_path = os.getenv('LOGGING_CONFIG_PATH')
    log_level = os.getenv('LOG_LEVEL', 'INFO')
    log_format = os.getenv('LOG_FORMAT', 'default')

    setup_logging(config_path, log_level, log_format)
    configure_structlog(json_output=log_format == 'json')
