"""Logging configuration for the lskysync CLI.

Everything goes through loguru. The console sink is for the user: warnings
always, workflow milestones with --verbose. The optional file sink gets the
full DEBUG trail of a run (requests, resolver candidates, rewrites).
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from lskysync import __version__
from lskysync.cli.console import get_console
from lskysync.config import LogConfig

LOG_DIR_ENV = "LSKYSYNC_LOG_DIR"

# stdlib loggers of the HTTP stack, forwarded at WARNING and above
INTERCEPTED_LOGGERS = ("httpx", "httpcore", "asyncio")

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"

_ALWAYS_SHOWN = frozenset({"WARNING", "ERROR", "CRITICAL"})


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, tagged with the source logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def _log_file(log_dir: str) -> Path:
    folder = Path(log_dir).expanduser()
    folder.mkdir(parents=True, exist_ok=True)
    return folder / f"lskysync_{datetime.now():%Y%m%d_%H%M%S_%f}.log"


def setup_logging(
    verbose: bool,
    log: LogConfig | None = None,
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Install the console and file sinks.

    Args:
        verbose: Also show INFO milestones on the console
        log: File logging settings; LSKYSYNC_LOG_DIR overrides ``log.dir``
        quiet: Install no console sink

    Returns:
        (console sink id or None, log file path or None)
    """
    log = log or LogConfig()
    logger.remove()

    console_id = None
    if not quiet:
        console_id = logger.add(
            sys.stderr,
            level="INFO",
            format=CONSOLE_FORMAT,
            filter=lambda record: _should_show_log(record, verbose),
        )

    log_dir = os.environ.get(LOG_DIR_ENV) or log.dir
    log_file = _log_file(log_dir) if log_dir else None
    if log_file is not None:
        logger.add(
            log_file,
            level=log.level,
            rotation=log.rotation,
            retention=log.retention,
            format=FILE_FORMAT,
        )

    handler = InterceptHandler()
    for name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [handler]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)

    return console_id, log_file


def _is_third_party_log(name: str) -> bool:
    """True for an intercepted logger or one of its children ("httpx._client")."""
    return any(
        name == root or name.startswith(root + ".") for root in INTERCEPTED_LOGGERS
    )


def _should_show_log(record: Any, verbose: bool) -> bool:
    level = record["level"].name
    if level in _ALWAYS_SHOWN:
        return True
    if level != "INFO" or _is_third_party_log(record["extra"].get("name", "")):
        return False
    return verbose


def print_version(ctx: Context, param: Any, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    get_console().print(f"lskysync {__version__}")
    ctx.exit(0)
