"""Structured logging and debug artifacts for documentation runs.

Every ``process_root`` call runs inside :func:`bind_run`, which puts a run id
and the root URL into structlog's context variables. Log lines and debug
artifacts written anywhere below it (including concurrently processed URLs)
carry that run id without it being passed around.
"""

import json
import logging
import os
import re
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import urlparse

import structlog

from ..utils import get_project_root

DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def get_debug_dir() -> Path:
    """Get the debug output directory (``DEBUG_DIR`` or ``<project>/debug``)."""
    debug_dir = Path(os.getenv("DEBUG_DIR", get_project_root() / "debug"))
    debug_dir.mkdir(parents=True, exist_ok=True)
    return debug_dir


def make_run_id(root_url: str) -> str:
    """Build a filesystem-safe id for one documentation run.

    Example: ``docs.example.com_20240101_120000_1a2b3c``.
    """
    host = urlparse(root_url).netloc or "run"
    host = _UNSAFE_PATH_CHARS.sub("_", host).strip("_") or "run"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{host}_{timestamp}_{uuid.uuid4().hex[:6]}"


def current_run_id() -> str | None:
    """Get the run id bound by the enclosing :func:`bind_run`, if any."""
    return structlog.contextvars.get_contextvars().get("run_id")


@contextmanager
def bind_run(root_url: str, run_id: str | None = None) -> Iterator[str]:
    """Bind a run id and root URL to every log line inside the block."""
    run_id = run_id or make_run_id(root_url)
    with structlog.contextvars.bound_contextvars(run_id=run_id, root_url=root_url):
        yield run_id


def save_debug_artifact(
    name: str,
    data: Any,
    phase: str | None = None,
    run_id: str | None = None,
) -> Path | None:
    """Write a JSON artifact (prompt, completion, result) when DEBUG is on.

    Artifacts land in ``<debug dir>/<run id>/<phase>/``. The run id defaults
    to the one bound by :func:`bind_run`.

    Returns:
        Path to the saved file, or None if debug mode is disabled or the
        write failed.
    """
    if not DEBUG:
        return None

    debug_dir = get_debug_dir()
    for part in (run_id or current_run_id(), phase):
        if part:
            debug_dir = debug_dir / _UNSAFE_PATH_CHARS.sub("_", part)
    debug_dir.mkdir(parents=True, exist_ok=True)

    # Microseconds: concurrent URLs in one batch write within the same second
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    filepath = debug_dir / f"{timestamp}_{_UNSAFE_PATH_CHARS.sub('_', name)[:80]}.json"

    try:
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="json", by_alias=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
    except (OSError, TypeError, ValueError) as e:
        structlog.get_logger().warning("failed_to_save_debug_artifact", name=name, error=str(e))
        return None

    return filepath


def configure_logging(level: str | None = None) -> None:
    """Configure structlog: console output on a TTY, JSON lines otherwise."""
    level_name = (level or LOG_LEVEL).upper()
    min_level = logging.getLevelName(level_name)
    if not isinstance(min_level, int):
        min_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=True)
            if sys.stderr.isatty()
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a logger, optionally bound to initial context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


configure_logging()
