"""
Structured logging configuration for the Retainer Settlements service.

Uses structlog for structured, context-aware logging with:
- JSON output for production
- Pretty console output for development
- Step timing for multi-step write sequences
- Caller context (trace_id, user_id, role) propagated to every event
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config

# Context variables for request-scoped data
_trace_id: ContextVar[str | None] = ContextVar('trace_id', default=None)
_user_id: ContextVar[str | None] = ContextVar('user_id', default=None)
_role: ContextVar[str | None] = ContextVar('role', default=None)


def get_trace_id() -> str | None:
    """Get the current trace ID from context."""
    return _trace_id.get()


def get_user_id() -> str | None:
    """Get the acting user's ID from context."""
    return _user_id.get()


def get_role() -> str | None:
    """Get the acting user's role from context."""
    return _role.get()


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that adds context variables to log entries."""
    trace_id = get_trace_id()
    user_id = get_user_id()
    role = get_role()

    if trace_id:
        event_dict['trace_id'] = trace_id
    if user_id:
        event_dict['user_id'] = user_id
    if role:
        event_dict['role'] = role

    return event_dict


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        json_output: If True, output JSON logs (for production).
                    If False, output pretty console logs (for development).
        log_level: Override log level (defaults to config.LOG_LEVEL)
    """
    level = log_level or config.LOG_LEVEL
    level_num = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format='%(message)s',
        stream=sys.stdout,
        level=level_num,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_info,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


@contextmanager
def logging_context(
    trace_id: str | None = None,
    user_id: str | None = None,
    role: str | None = None,
) -> Generator[None, None, None]:
    """
    Context manager for setting logging context variables.

    Usage:
        with logging_context(trace_id="abc123", user_id="u_1", role="admin"):
            logger.info("invoice.created")  # Includes trace_id, user_id, role
    """
    old_trace = _trace_id.get()
    old_user = _user_id.get()
    old_role = _role.get()

    try:
        if trace_id is not None:
            _trace_id.set(trace_id)
        if user_id is not None:
            _user_id.set(user_id)
        if role is not None:
            _role.set(role)
        yield
    finally:
        _trace_id.set(old_trace)
        _user_id.set(old_user)
        _role.set(old_role)


class OperationTimer:
    """
    Timer for tracking the steps of a multi-step write sequence.

    Usage:
        timer = OperationTimer()
        with timer.step("unlink"):
            ...
        with timer.step("link"):
            ...
        logger.info("invoice.updated", **timer.summary())
    """

    def __init__(self):
        self.steps: dict[str, float] = {}
        self.start_time: float = time.perf_counter()

    @contextmanager
    def step(self, name: str) -> Generator[None, None, None]:
        """Time one step."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.steps[name] = (time.perf_counter() - started) * 1000

    @property
    def total_ms(self) -> float:
        """Total elapsed time since timer creation in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        """Get timing summary as a dictionary."""
        return {
            'total_ms': round(self.total_ms, 2),
            'steps': {k: round(v, 2) for k, v in self.steps.items()},
        }


# Initialize logging on module import (development mode by default)
# Production deployments should call configure_logging(json_output=True)
configure_logging(json_output=config.LOG_JSON)
