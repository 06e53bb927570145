"""structlog setup for the rewards service."""

import logging

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from fairytale.config import Settings

# Per-statement SQL and connection chatter drowns the reward events at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "asyncio", "httpx")


def service_fields(service: str, environment: str) -> Processor:
    """Stamp every event with the service name and environment."""

    def add_service(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service


def build_processors(settings: Settings) -> list[Processor]:
    renderer: Processor
    if settings.log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    return [
        structlog.contextvars.merge_contextvars,
        service_fields(settings.service_name, settings.environment),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging at the configured level."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=build_processors(settings),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
