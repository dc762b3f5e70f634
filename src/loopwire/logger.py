"""Structured logging singleton.

Reads os.environ directly: the logger must exist before pydantic Settings
are loaded so that configuration problems can themselves be logged.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import structlog

_SHARED_PROCESSORS: list[structlog.typing.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.dev.set_exc_info,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def _level_from_env() -> int:
    if os.environ.get("RALPH_DEBUG", "").lower() == "true":
        return logging.DEBUG
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _setup_logging() -> structlog.stdlib.BoundLogger:
    level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        )
    )
    root = logging.getLogger("loopwire")
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("loopwire")


logger = _setup_logging()


def set_level(level: int | str) -> None:
    """Change the level after startup (``debug = true`` in config)."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger("loopwire").setLevel(level)


def attach_log_file(path: Path) -> bool:
    """Mirror log output into ``path`` without colours.

    Only attaches when the parent directory already exists, so the host
    decides whether a log directory is wanted. Returns True when attached.
    """
    if not path.parent.is_dir():
        return False

    root = logging.getLogger("loopwire")
    resolved = str(path.resolve())
    for existing in root.handlers:
        if isinstance(existing, logging.FileHandler) and existing.baseFilename == resolved:
            return True

    handler = logging.FileHandler(resolved, encoding="utf-8")
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
        )
    )
    root.addHandler(handler)
    return True


def _uncaught_exception_handler(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
    sys.exit(1)


def install_excepthook() -> None:
    """Route uncaught exceptions through the logger (CLI entry point only)."""
    sys.excepthook = _uncaught_exception_handler
