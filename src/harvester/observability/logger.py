"""structlog setup for the harvest ingestion service.

Events are rendered as one JSON object per line. Each event is stamped with
``service`` so importer and harvester lines can be picked out of a shared sink.
"""

from __future__ import annotations

import logging

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from ..config.settings import get_settings


def resolve_level(name: str) -> int:
    """Map a level name (any case) to a ``logging`` level; unknown names give INFO."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def service_stamper(service_name: str) -> Processor:
    def stamp(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return stamp


def configure_logging(level: str | None = None) -> None:
    """Install the JSON processor chain. ``level`` overrides ``LOG_LEVEL``."""
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        service_stamper(settings.service_name),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        # French document names and obstacles stay readable
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(level or settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
