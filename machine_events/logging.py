"""
Structured logging configuration using structlog.

Standardized log format:
{
    "ts": "2026-01-15T10:00:00.123456Z",
    "level": "info",
    "service": "machine-events",
    "correlation_id": "uuid-v4",
    "event": "batch.processed",
    "module": "machine_events.services.event_service",
    "function": "process_batch",
    "line": 42,
    ...additional context...
}
"""
import structlog
import logging
from typing import Any

SERVICE_NAME = "machine-events"


def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add service name to all log entries."""
    event_dict["service"] = SERVICE_NAME
    return event_dict


def add_module_info(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add module, function, and line number to log entries."""
    frame = structlog._frames._find_first_app_frame_and_name([__name__])[0]
    if frame:
        event_dict["module"] = frame.f_globals.get("__name__", "unknown")
        event_dict["function"] = frame.f_code.co_name
        event_dict["line"] = frame.f_lineno
    return event_dict


def setup_logging(json_output: bool = True, level: int = logging.INFO):
    """
    Configure structured logging with standardized fields.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        level: Minimum level passed through the filtering logger.
    """
    shared_processors = [
        # Includes correlation_id bound by CorrelationMiddleware
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        add_module_info,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)

    # Silence uvicorn's default logging to avoid duplicate logs
    logging.getLogger("uvicorn.error").handlers = []
    logging.getLogger("uvicorn.access").handlers = []


def get_logger():
    """Get a configured structlog logger."""
    return structlog.get_logger()
