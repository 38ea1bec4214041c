"""Structured logging utilities using structlog for audit events and submission tracing."""

import os
import sys
import uuid
from typing import Any, Optional
import structlog
from structlog.processors import JSONRenderer
from structlog.contextvars import merge_contextvars

# Check if we're in development mode (TTY and FEEDBACK_LOG_FORMAT=console)
IS_TTY = sys.stderr.isatty()
LOG_FORMAT = os.getenv("FEEDBACK_LOG_FORMAT", "console").lower()
LOG_LEVEL = os.getenv("FEEDBACK_LOG_LEVEL", "INFO").upper()


def configure_structured_logging() -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer for production (structured, machine-readable)
    - Context binding for submission correlation ids
    """
    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and LOG_FORMAT == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_structured_logger(
    name: str,
    **additional_context: Any,
) -> structlog.BoundLogger:
    """
    Get a structured logger with bound context.

    Args:
        name: Logger name (typically module name)
        **additional_context: Additional context to bind

    Returns:
        Configured BoundLogger instance with context

    Example:
        >>> logger = get_structured_logger("audit", component="AuditLog")
        >>> logger.info("spam_rejected", url="https://example.com")
    """
    logger = structlog.get_logger(name)
    if additional_context:
        logger = logger.bind(**additional_context)
    return logger


def get_correlation_id() -> str:
    """
    Generate a correlation ID for tracing one submission through the pipeline.

    Returns:
        UUID string for correlation
    """
    return str(uuid.uuid4())


def bind_submission_context(
    logger: structlog.BoundLogger,
    correlation_id: str,
    url: Optional[str] = None,
) -> structlog.BoundLogger:
    """
    Bind submission context to an existing logger.

    Args:
        logger: Existing logger instance
        correlation_id: Correlation ID for the submission
        url: Optional URL the feedback targets

    Returns:
        Logger with bound submission context
    """
    bound_logger = logger.bind(correlation_id=correlation_id)
    if url:
        bound_logger = bound_logger.bind(url=url)
    return bound_logger


# Configure on module import
configure_structured_logging()


__all__ = [
    "get_structured_logger",
    "get_correlation_id",
    "bind_submission_context",
    "configure_structured_logging",
]
