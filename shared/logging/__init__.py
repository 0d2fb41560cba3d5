"""Structured logging module using structlog."""

from .structured_logger import (
    LoggerMixin,
    bind_context,
    configure_logging,
    unbind_context,
)

__all__ = [
    "LoggerMixin",
    "bind_context",
    "configure_logging",
    "unbind_context",
]
