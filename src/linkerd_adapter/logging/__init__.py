"""Logging configuration for linkerd_adapter."""

from linkerd_adapter.logging.config import configure_logging, get_logger, operation_context

__all__ = ["configure_logging", "get_logger", "operation_context"]
