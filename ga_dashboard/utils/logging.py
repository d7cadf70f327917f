"""
Structured logging configuration using structlog.

Every event carries the GA4 property and site it was produced for, so logs
from several dashboard deployments can share one sink. Request ids are bound
per request by the tracing middleware through structlog contextvars.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from ga_dashboard.config import Settings, get_settings

REDACTED = "[redacted]"
SECRET_KEYS = frozenset({"code", "token", "authorization", "jwt_secret", "credentials"})


class ServiceContext:
    """Processor stamping the configured property and site onto each event."""

    def __init__(self, settings: Settings):
        self.property_id = settings.ga_property_id or None
        self.site = settings.site_hostname or None

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("ga_property", self.property_id)
        event_dict.setdefault("site", self.site)
        return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask access codes, tokens and credentials passed as log fields."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for structured logging."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def build_processors(settings: Settings) -> list[Processor]:
    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=not settings.testing)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        ServiceContext(settings),
        redact_secrets,
        add_severity,
        renderer,
    ]


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the stdlib root logger once at startup.

    JSON lines in production, the console renderer in dev mode or when
    LOG_FORMAT=console.
    """
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)
