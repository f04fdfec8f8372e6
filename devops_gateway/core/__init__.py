"""Core module with logging, middleware, errors and response translation."""

from devops_gateway.core.exceptions import setup_exception_handlers
from devops_gateway.core.logging import get_logger, setup_logging
from devops_gateway.core.middleware import (
    CallerIdentityMiddleware,
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
)

__all__ = [
    "CallerIdentityMiddleware",
    "RequestContextMiddleware",
    "RequestSizeLimitMiddleware",
    "get_logger",
    "setup_exception_handlers",
    "setup_logging",
]
