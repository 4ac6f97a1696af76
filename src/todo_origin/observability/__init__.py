"""Logging setup and correlation helpers."""

from todo_origin.observability.logging import (
    DEFAULT_LOGGER_NAME,
    LoggingConfig,
    LoggingHandle,
    correlation_scope,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "LoggingConfig",
    "LoggingHandle",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
