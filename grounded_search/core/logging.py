"""
Grounded Search - Logging Configuration

structlog on top of the standard library. Events are short sentences
with key/value context; a search binds its id, mode and corpus once and
every event logged while it runs carries them.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from grounded_search.core.config import settings

# Raw query text and chunk text can be arbitrarily long
MAX_FIELD_LENGTH = 200

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine", "asyncio")


def truncate_long_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Shorten string values so a single event stays readable."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = value[:MAX_FIELD_LENGTH] + "..."
    return event_dict


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure structured logging.

    Args:
        level: Log level name; defaults to LOG_LEVEL
        json_logs: Render JSON lines; defaults to ``not DEBUG``
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    if json_logs is None:
        json_logs = not settings.DEBUG

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        truncate_long_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def new_search_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def search_context(**fields: Any) -> Iterator[str]:
    """
    Bind a search id and the given fields to every event logged inside.

    Yields:
        The search id, generated unless passed as ``search_id``
    """
    search_id = fields.pop("search_id", None) or new_search_id()
    with structlog.contextvars.bound_contextvars(search_id=search_id, **fields):
        yield search_id


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with the given name."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a logger named after it and tagged with its component."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        name = self.__class__.__name__
        return get_logger(name).bind(component=name)
