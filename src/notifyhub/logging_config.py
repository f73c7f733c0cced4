"""Structured logging for NotifyHub.

Modules log through plain ``logging.getLogger(__name__)``; structlog's
ProcessorFormatter renders every record, ours and third-party, as JSON in
production or as console lines in local mode. Request and message context
(trace id, notification id, user id) travels in contextvars.
"""

import logging
import sys

import structlog

SERVICE_NAME = "notifyhub"

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "redis")


def _add_service(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: JSON lines (production) instead of console output (local mode).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        final_processors = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final_processors],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_request_context(trace_id: str) -> None:
    """Bind the request's trace id for every log line of the current request."""
    structlog.contextvars.bind_contextvars(trace_id=trace_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def notification_context(notification_id: str, user_id: str | None = None):
    """Context manager binding a notification (and its user) to log lines inside it."""
    ctx = {"notification_id": notification_id}
    if user_id:
        ctx["user_id"] = user_id
    return structlog.contextvars.bound_contextvars(**ctx)
