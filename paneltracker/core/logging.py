"""Structured logging for the CLI and the web app.

structlog renders its own events and records from stdlib ``logging``
loggers alike (the ingestion and store modules log through the latter), so
context bound with ``import_run_context`` appears on every line an import
run emits, whichever module wrote it.

``JSON_LOGS=true`` switches from the console renderer to one JSON object per
line; ``LOG_LEVEL`` sets the root level. When ``logs/`` exists next to the
working directory the same lines also go to ``logs/paneltracker.log``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

LOG_FILE = Path("logs/paneltracker.log")

# Handlers installed by configure_logging, replaced on reconfiguration
_installed: list[logging.Handler] = []


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderers(json_logs: bool) -> list[Any]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def configure_logging(level: str | None = None) -> None:
    """Route structlog and stdlib logging through one formatter."""
    json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"

    structlog.configure(
        processors=_pre_chain()
        + [
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta]
        + _renderers(json_logs),
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.exists():
        handlers.append(logging.FileHandler(LOG_FILE))

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
    _installed.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed.append(handler)
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())


@contextmanager
def import_run_context(kind: str, mode: str, user_id: Any = None) -> Iterator[str]:
    """Tag every log line inside the block with one import run.

    Binds ``import_run`` (a short id), ``import_kind``, ``import_mode`` and
    ``user_id`` to structlog's context variables and yields the run id.
    """
    run_id = uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(
        import_run=run_id,
        import_kind=kind,
        import_mode=mode,
        user_id=str(user_id) if user_id is not None else None,
    ):
        yield run_id
