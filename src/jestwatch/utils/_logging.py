"""Structured logging for jestwatch.

Loggers are built with ``structlog.wrap_logger`` rather than
``structlog.configure`` so that creating one never touches global state.
Tests and embedding applications can hold several at once.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger, Processor

LogFormatType = Literal["json", "text"]

DEBUG_ENV_VAR = "JESTWATCH_DEBUG"


def resolve_log_level(name: str, *, honor_debug_env: bool = False) -> int:
    """Map a level name such as ``"warning"`` to its numeric value.

    Unknown names fall back to INFO. With ``honor_debug_env`` set, a
    non-empty JESTWATCH_DEBUG forces DEBUG.
    """
    if honor_debug_env and getenv(DEBUG_ENV_VAR):
        return logging.DEBUG
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _rotating_logger(path: Path, level: int, max_bytes: int, backups: int) -> object:
    # One stdlib logger per file, detached from the root logger
    target = logging.getLogger(f"jestwatch.file.{path}")
    for old in list(target.handlers):
        target.removeHandler(old)
        old.close()
    target.propagate = False
    target.setLevel(level)

    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)
    handler.setFormatter(logging.Formatter("%(message)s"))
    target.addHandler(handler)
    return target


def _open_output(
    log_file: str, level: int, max_bytes: int, backup_count: int
) -> object:
    if not log_file:
        return structlog.PrintLogger(file=sys.stderr)

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    if max_bytes > 0 and backup_count > 0:
        return _rotating_logger(path, level, max_bytes, backup_count)
    return structlog.WriteLogger(file=path.open("a", encoding="utf-8"))


def _processors(log_format: LogFormatType) -> "list[Processor]":
    chain: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "text":
        chain.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        chain.append(structlog.processors.dict_tracebacks)
        chain.append(structlog.processors.JSONRenderer())
    return chain


def build_logger(
    log_file: str,
    *,
    level: int,
    log_format: LogFormatType = "json",
    max_bytes: int = 0,
    backup_count: int = 0,
) -> "FilteringBoundLogger":
    """Build a standalone logger writing to ``log_file``.

    An empty ``log_file`` sends entries to stderr. Parent directories are
    created as needed. The file rotates only when both ``max_bytes`` and
    ``backup_count`` are positive.
    """
    output = _open_output(log_file, level, max_bytes, backup_count)
    logger = structlog.wrap_logger(
        output,
        processors=_processors(log_format),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
    )
    return cast("FilteringBoundLogger", logger)


def create_logger(
    *,
    level: str = "info",
    log_format: LogFormatType = "json",
    log_file: str = "",
    max_bytes: int = 0,
    backup_count: int = 0,
    **context: object,
) -> "FilteringBoundLogger":
    """Create the application logger from configuration values.

    Args:
        level: Threshold name. JESTWATCH_DEBUG in the environment overrides it.
        log_format: ``"json"`` or ``"text"``.
        log_file: Destination file. Empty means stderr.
        max_bytes: Rotation size. Zero disables rotation.
        backup_count: Rotated files kept. Zero disables rotation.
        **context: Values bound to every entry.
    """
    logger = build_logger(
        log_file,
        level=resolve_log_level(level, honor_debug_env=True),
        log_format=log_format,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
    return logger.bind(**context) if context else logger
