"""Structured logging for the library service.

Every change to the catalog, the user registry or the loan ledger is logged
by ``LibraryService`` as an event such as ``loan_opened`` or ``book_removed``.
``tag_mutations`` marks those entries with ``mutation=True`` and the record
kind, so the log stream doubles as an audit trail of who borrowed what.

Output is JSON lines when stderr is not a terminal and a console rendering
otherwise. Persistence-layer messages from the standard library ``logging``
module pass through the same processors.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

MUTATION_SUFFIXES = ("_added", "_updated", "_removed", "_opened", "_ended", "_deleted")
RECORD_KINDS = ("loan", "book", "user")

QUIET_LOGGERS = ("uvicorn.access", "multipart")


def tag_mutations(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Flag store mutations (``loan_opened``, ``user_removed``, ...)."""
    event = event_dict.get("event")
    if not isinstance(event, str) or not event.endswith(MUTATION_SUFFIXES):
        return event_dict
    kind = event.split("_", 1)[0].rstrip("s")
    if kind in RECORD_KINDS:
        event_dict["mutation"] = True
        event_dict["record"] = kind
    return event_dict


def _processors(service_name: str) -> list[Any]:
    def add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service,
        tag_mutations,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    service_name: str = "library-ledger",
) -> None:
    """Route structlog and stdlib logging through one handler on stderr.

    Args:
        level: Log level name
        json_output: None means JSON unless stderr is a TTY; LIBRARY_LOG_JSON=1
            forces JSON
        service_name: Value of the ``service`` key on every entry
    """
    if json_output is None:
        json_output = os.getenv("LIBRARY_LOG_JSON") == "1" or not sys.stderr.isatty()

    processors = _processors(service_name)
    if json_output:
        processors.append(structlog.processors.format_exc_info)
        renderer: Any = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    logging.basicConfig(handlers=[handler], level=level.upper(), force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach request-scoped keys (correlation_id, request_id) to later entries."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "tag_mutations",
]
