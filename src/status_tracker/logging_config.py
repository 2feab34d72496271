"""structlog setup for the status tracker.

Console rendering is used outside production and JSON lines in production.
Both go through the standard library so handlers (stderr, an optional log
file, pytest's caplog) see every event.

Modules log snake_case events with key/value context:

    logger = get_logger(__name__)
    logger.info("status_updated", status_id=status.status_id, version=2)
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from status_tracker.config import Settings, get_settings

NOISY_LOGGERS = ("psycopg2", "sqlite3")


class _ServiceContext:
    """Stamps app, environment and storage backend onto JSON events."""

    def __init__(self, settings: Settings) -> None:
        self._fields = {
            "app": settings.app_name,
            "environment": settings.environment.value,
            "storage_backend": settings.storage_backend.value,
        }

    def __call__(
        self, logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in self._fields.items():
            event_dict.setdefault(key, value)
        return event_dict


def build_processors(settings: Settings) -> list[Processor]:
    """Processor chain ending in the renderer chosen by ``log_format``."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.log_format == "json":
        processors += [
            _ServiceContext(settings),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    return processors


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging at the configured level."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.value)

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("status_tracker").setLevel(level)

    if settings.log_file:
        _add_file_handler(settings.log_file, level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def _add_file_handler(log_file: Path, level: int) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    logging.getLogger().addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every event logged inside the block.

    Example:
        with log_context(command="update", caller="advisor456"):
            store.update(status_id, patch, updated_by="advisor456")
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
