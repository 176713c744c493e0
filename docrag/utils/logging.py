"""Structured logging for docrag, built on structlog.

One shared processor chain feeds either a coloured ConsoleRenderer
(development) or a JSONRenderer (``APP_ENV=production`` or
``json_output=True``).  Standard-library ``logging`` goes through the same
chain, so uvicorn and client-library records look like docrag's own.

On top of that chain:

* :func:`configure_logging` binds process-wide context: ``service`` and,
  when given, the ``store`` backend.
* Enum and path values (``IngestionPhase``, ``ContentType``, database
  paths) are rendered as plain strings.
* httpx, httpcore, openai and aiosqlite are held at WARNING unless docrag
  itself logs at DEBUG.
* :func:`document_context` binds ``document_id`` for the duration of an
  ingestion or query.  Lines from providers called inside the block
  (embedding fallbacks, store writes) carry it without passing it along.
"""

import logging
import os
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from enum import Enum
from pathlib import PurePath
from typing import Any

import structlog

SERVICE_NAME = "docrag"

_QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "aiosqlite")


def _plain_values(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace enum members by their value and paths by their string form."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, PurePath):
            event_dict[key] = str(value)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    store_backend: str | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib bridge.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).
        store_backend: Document store backend name, bound as ``store`` on
                       every line.

    Returns:
        A configured structlog BoundLogger.
    """
    level = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _plain_values,
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    library_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    process_context: dict[str, str] = {"service": SERVICE_NAME}
    if store_backend:
        process_context["store"] = store_backend.lower()
    structlog.contextvars.bind_contextvars(**process_context)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def document_context(document_id: str, **extra: Any) -> Iterator[None]:
    """Bind ``document_id`` and *extra* to every line logged inside the block.

    Keys bound before the block are restored on exit.  Explicit keyword
    arguments at a call site still take precedence over bound values.
    """
    with structlog.contextvars.bound_contextvars(document_id=document_id, **extra):
        yield
