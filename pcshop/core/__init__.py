"""Cross-cutting service plumbing: JSON logging and health endpoints."""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    RequestLoggingMiddleware,
)

__all__ = [
    "ServiceHealth",
    "HealthStatus",
    "setup_logging",
    "get_logger",
    "set_request_context",
    "clear_request_context",
    "RequestLoggingMiddleware",
]
