"""structlog setup: one event per line, tagged with the running app's identity."""

import logging

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from whbjj.config import Settings

# RequestIdMiddleware emits request_completed, so the server's access log is noise.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def _app_context(settings: Settings) -> Processor:
    def add_app_context(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", "whbjj-api")
        event_dict.setdefault("environment", settings.environment)
        event_dict.setdefault("version", settings.app_version)
        return event_dict

    return add_app_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON (deployments) or console (local dev) output."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _app_context(settings),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
