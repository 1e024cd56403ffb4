"""structlog setup for the reconciler process."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

LOG_DIR = Path.home() / ".local" / "state" / "cluster-reconciler"
LOG_FILE = LOG_DIR / "reconciler.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
RETENTION_DAYS = 14

# Third-party loggers that are chatty at DEBUG level (watch streams, HTTP pool).
NOISY_LOGGERS = ("kubernetes", "urllib3")


def _shared_processors() -> list[structlog.types.Processor]:
    """Processors applied to both structlog and foreign (stdlib) records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _cleanup_old_logs() -> None:
    """Delete rotated log files older than RETENTION_DAYS."""
    if not LOG_DIR.exists():
        return
    cutoff = datetime.now() - timedelta(days=RETENTION_DAYS)
    for log_file in LOG_DIR.glob(f"{LOG_FILE.name}*"):
        try:
            if datetime.fromtimestamp(log_file.stat().st_mtime) < cutoff:
                log_file.unlink()
        except OSError:
            # A concurrently rotated file may vanish between glob and stat.
            continue


def _setup_file_logging() -> None:
    """Attach a rotating JSON file handler to the root logger."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    _cleanup_old_logs()

    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_shared_processors(),
        )
    )
    logging.getLogger().addHandler(file_handler)


def _level(verbose: bool, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    return logging.INFO if verbose else logging.WARNING


def _renderer(json_output: bool, debug: bool) -> structlog.types.Processor:
    """JSON lines for pods, a coloured console with rich tracebacks otherwise."""
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=debug),
    )


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    json_output: bool = False,
    log_to_file: bool = True,
) -> None:
    """Route structlog and stdlib records through one set of handlers.

    The console shows WARNING and above unless ``verbose`` (INFO) or
    ``debug`` (DEBUG) is set. When ``log_to_file`` is set, every record also
    lands as JSON in ~/.local/state/cluster-reconciler/reconciler.log,
    rotated at 10MB with 5 backups and pruned after RETENTION_DAYS.

    Args:
        verbose: Show INFO records.
        debug: Show DEBUG records, local variables in tracebacks and the
            chatty kubernetes/urllib3 loggers.
        json_output: Render the console as JSON lines.
        log_to_file: Also write the rotating JSON file log.
    """
    level = _level(verbose, debug)
    pre_chain = _shared_processors()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=_renderer(json_output, debug), foreign_pre_chain=pre_chain)
    )

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)  # handlers filter
    root.addHandler(console)

    if not debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    if log_to_file:
        _setup_file_logging()


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Return a structlog logger, bound to ``initial_context`` when given."""
    logger: structlog.BoundLogger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
