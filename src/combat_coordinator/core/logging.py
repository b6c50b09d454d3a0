"""Structured logging for the combat coordinator.

Every state transition is logged through structlog with its session, round
and participant as key-value context. Console output is used during
development; JSON lines are emitted when ``log_json`` is set so that a
session's history can be grepped by ``session_id``.

Example:
    >>> from combat_coordinator.core.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Round advanced", session_id="s1", round_number=2)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from combat_coordinator.core.config import Settings


# =============================================================================
# Processors
# =============================================================================


def add_app_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Tag every entry with the application name."""
    event_dict["app"] = "combat_coordinator"
    return event_dict


def render_enum_values(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace enum members with their values.

    Planes, intent kinds and notification kinds are passed to the logger as
    enum members; JSON output needs their plain values.
    """
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


# =============================================================================
# Setup
# =============================================================================


def configure_logging(
    settings: Settings | None = None,
    *,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        settings: Settings providing ``log_level`` and ``log_json``. Defaults
            to ``get_settings()``.
        log_file: Optional path that also receives standard library records.

    Example:
        >>> configure_logging(Settings(debug=True))
    """
    if settings is None:
        from combat_coordinator.core.config import get_settings

        settings = get_settings()

    level = getattr(logging, settings.log_level, logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        render_enum_values,
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: Processor
    if settings.log_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # sqlite3 retries are reported by tenacity through the stdlib logger
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structlog logger, typically named after the calling module."""
    return structlog.get_logger(name)


@contextmanager
def request_context(**kwargs: Any) -> Iterator[None]:
    """Bind context for every log entry emitted inside the block.

    The gateway wraps each request so that entries logged deep inside a
    session carry the requesting session and participant. Previously bound
    values are restored on exit.

    Args:
        **kwargs: Key-value pairs to bind; ``None`` values are skipped.

    Example:
        >>> with request_context(session_id="s1", participant_id="sam"):
        ...     logger.info("Intent received")
    """
    bound = {key: value for key, value in kwargs.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


__all__ = [
    "add_app_context",
    "configure_logging",
    "get_logger",
    "render_enum_values",
    "request_context",
]
