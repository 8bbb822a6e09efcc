"""
Shared utilities for the task platform

This package contains common utilities used across all microservices.
"""

from .logger import setup_logging, get_logger, init_logging
from .errors import (
    ServiceError,
    ValidationError,
    InvalidReferenceError,
    DuplicateKeyError,
    NotFoundError,
    ServiceUnavailableError,
    InternalError,
    BrokerFatalError,
    register_exception_handlers,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "init_logging",
    "ServiceError",
    "ValidationError",
    "InvalidReferenceError",
    "DuplicateKeyError",
    "NotFoundError",
    "ServiceUnavailableError",
    "InternalError",
    "BrokerFatalError",
    "register_exception_handlers",
]

__version__ = "1.0.0"
