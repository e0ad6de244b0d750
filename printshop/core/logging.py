"""
Structured logging configuration with request and actor correlation.

This module configures structlog for the whole application. Development
environments get a colored console renderer, every other environment emits
one JSON object per event. Request IDs and the acting user are carried in
context variables so that every event logged while handling a request or a
workflow transition can be correlated afterwards.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from printshop.core.config import get_settings

# Context variables for request correlation
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
actor_id_ctx: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)
actor_role_ctx: ContextVar[Optional[str]] = ContextVar("actor_role", default=None)

SLOW_OPERATION_THRESHOLD_MS = 500


def add_request_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add request ID from context to log event.

    Args:
        logger: Logger instance
        method_name: Log method name
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with request_id
    """
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_actor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add the acting user and role from context to log event.

    Explicit ``actor_id``/``actor_role`` keys passed by the caller win.
    """
    actor_id = actor_id_ctx.get()
    if actor_id:
        event_dict.setdefault("actor_id", actor_id)
    actor_role = actor_role_ctx.get()
    if actor_role:
        event_dict.setdefault("actor_role", actor_role)
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging.

    Sets up structlog processors for development and production
    environments and routes the standard library logging through the same
    stream so third-party libraries end up in one place.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_request_id,
        add_actor,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Use console renderer for development, JSON everywhere else
    if settings.is_development:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID in context for correlation.

    Args:
        request_id: Optional request ID, generates UUID if not provided

    Returns:
        Request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get current request ID from context, or an empty string."""
    return request_id_ctx.get()


def set_actor(actor_id: Optional[str], role: Optional[str] = None) -> None:
    """
    Set the acting user in context for correlation.

    Args:
        actor_id: ID of the user performing the operation
        role: Application role the user acts under
    """
    actor_id_ctx.set(actor_id)
    actor_role_ctx.set(role)


def clear_context() -> None:
    """
    Clear all context variables.

    Should be called at the end of request processing to prevent
    context leakage between requests.
    """
    request_id_ctx.set("")
    actor_id_ctx.set(None)
    actor_role_ctx.set(None)


class PerformanceLogger:
    """
    Context manager for performance logging.

    Logs execution time of code blocks with structured context. Blocks
    slower than ``SLOW_OPERATION_THRESHOLD_MS`` are logged as warnings.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug(
            "Operation started",
            operation=self.operation,
            **self.context,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return

        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                "Operation failed",
                operation=self.operation,
                duration_ms=round(duration_ms, 2),
                error_type=exc_type.__name__,
                **self.context,
            )
        else:
            log_method = (
                self.logger.warning
                if duration_ms > SLOW_OPERATION_THRESHOLD_MS
                else self.logger.info
            )
            log_method(
                "Operation completed",
                operation=self.operation,
                duration_ms=round(duration_ms, 2),
                **self.context,
            )


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> PerformanceLogger:
    """
    Create performance logger context manager.

    Args:
        logger: Logger instance to use
        operation: Operation name for logging
        **context: Additional context to include in logs

    Returns:
        PerformanceLogger context manager

    Example:
        >>> logger = get_logger(__name__)
        >>> with log_performance(logger, "apply_transition", action="start_design"):
        ...     await engine.execute(order_id, actor, "start_design")
    """
    return PerformanceLogger(logger, operation, **context)
