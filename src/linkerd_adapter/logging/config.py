"""Structured logging configuration using structlog.

Console output goes to stdout, human readable by default. A rotating JSON log
is kept under ``~/.local/state/linkerd-adapter``. Log lines emitted while an
operation runs carry its ``operation_id`` through structlog context variables,
including lines logged from worker threads.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

LOG_DIR = Path(
    os.environ.get("LINKERD_ADAPTER_LOG_DIR", Path.home() / ".local" / "state" / "linkerd-adapter")
)
LOG_FILE = LOG_DIR / "adapter.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
RETENTION_DAYS = 30

CONSOLE_HANDLER = "linkerd-adapter-console"
FILE_HANDLER = "linkerd-adapter-file"

# Libraries that log full request/response bodies at DEBUG
NOISY_LOGGERS = ("kubernetes", "urllib3", "httpx", "httpcore")

SHARED_PROCESSORS: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
)


def _expired_logs(now: datetime | None = None) -> Iterator[Path]:
    cutoff = (now or datetime.now()) - timedelta(days=RETENTION_DAYS)
    for log_file in LOG_DIR.glob(f"{LOG_FILE.name}*"):
        try:
            if datetime.fromtimestamp(log_file.stat().st_mtime) < cutoff:
                yield log_file
        except OSError:
            continue


def _cleanup_old_logs() -> None:
    """Delete rotated adapter logs older than RETENTION_DAYS."""
    if not LOG_DIR.exists():
        return
    for log_file in list(_expired_logs()):
        try:
            log_file.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug("could not remove %s: %s", log_file, e)


def _replace_handler(root: logging.Logger, handler: logging.Handler) -> None:
    """Install *handler*, dropping an earlier one with the same name."""
    for existing in [h for h in root.handlers if h.get_name() == handler.get_name()]:
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=list(SHARED_PROCESSORS),
    )


def _console_formatter(json_output: bool, debug: bool) -> structlog.stdlib.ProcessorFormatter:
    if json_output:
        return _json_formatter()
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=debug),
        ),
        foreign_pre_chain=list(SHARED_PROCESSORS),
    )


def _setup_file_logging() -> None:
    """Attach the rotating JSON file handler to the root logger."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    _cleanup_old_logs()

    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT)
    file_handler.set_name(FILE_HANDLER)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(_json_formatter())
    _replace_handler(logging.getLogger(), file_handler)


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    json_output: bool = False,
    log_to_file: bool = True,
) -> None:
    """Configure structured logging for the adapter.

    Safe to call more than once; the adapter's handlers are replaced rather
    than stacked.

    Args:
        verbose: Enable verbose (INFO level) output.
        debug: Enable debug mode (DEBUG level).
        json_output: Render console lines as JSON.
        log_to_file: Also write JSON logs to the rotating log file.
    """
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_console_formatter(json_output, debug))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    _replace_handler(root_logger, console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))

    if log_to_file:
        _setup_file_logging()


@contextmanager
def operation_context(operation_id: str, **extra: Any) -> Iterator[None]:
    """Bind *operation_id* to every log line emitted inside the block.

    Context variables are copied into tasks and ``asyncio.to_thread`` workers
    started within the block.
    """
    with structlog.contextvars.bound_contextvars(operation_id=operation_id, **extra):
        yield


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a configured logger with optional initial context.

    Args:
        name: Logger name. If None, uses the calling module's name.
        **initial_context: Initial context variables to bind to the logger.

    Returns:
        A bound structlog logger.
    """
    logger: structlog.BoundLogger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
