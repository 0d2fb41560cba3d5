"""Structured logging for the catalog processes.

The API, the runtime host and the build tool all log through structlog,
rendered by the standard library root logger on stdout. Every entry carries
``app`` and ``environment``; the API additionally binds ``correlation_id``
per request, and each process binds its ``service`` name once at start-up.
"""

import logging
import os
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "product-catalog"


def add_catalog_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp entries with the application name and deployment environment."""
    event_dict["app"] = APP_NAME
    event_dict.setdefault("environment", os.getenv("CATALOG_API_ENVIRONMENT", "production"))
    return event_dict


def _processors(json_logs: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_catalog_context,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    service_name: Optional[str] = None,
) -> None:
    """Route structlog through the root logger at ``log_level``.

    Safe to call more than once: the host configures from the environment
    before loading a published build, and the build CLI configures per run.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_logs: One JSON object per line; console rendering otherwise
        service_name: Bound as ``service`` on every entry of this process
    """
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)


class LoggerMixin:
    """Gives a class a ``logger`` named after its module and class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        cls = type(self)
        return structlog.get_logger(f"{cls.__module__}.{cls.__qualname__}")


def bind_context(**kwargs: Any) -> None:
    """Attach key-value pairs to every entry logged in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
