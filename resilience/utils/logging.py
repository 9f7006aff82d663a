"""
Structured logging setup.

Engine components call ``structlog.get_logger()`` and log snake_case event
names with keyword context; this module decides how those events are
rendered. The HTTP layer binds ``request_id`` through structlog
contextvars, so every event logged while serving a request carries it.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from resilience.config import get_settings

SERVICE_NAME = "cloud-resilience-core"


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every event with the service name and an upper-case severity."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict["severity"] = method_name.upper()
    return event_dict


def build_renderer(log_format: str, dev_mode: bool) -> Processor:
    """JSON lines unless console output is asked for or dev mode is on."""
    if log_format.lower() == "console" or dev_mode:
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer(sort_keys=True)


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Log level name; defaults to the ``LOG_LEVEL`` setting
        log_format: "json" or "console"; defaults to the ``LOG_FORMAT`` setting
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service,
            build_renderer(log_format or settings.log_format, settings.dev_mode),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Structured logger bound to ``name`` (typically ``__name__``)."""
    return structlog.get_logger(name)
