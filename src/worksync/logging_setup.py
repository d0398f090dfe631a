# src/worksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "worksync.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Background components that would otherwise interleave with the console prompt.
QUIET_APP_LOGGERS = ("worksync.sync.", "worksync.cache.")

# Third-party loggers that are chatty at INFO/DEBUG (HTTP requests, gRPC channels).
NOISY_LOGGERS = ("httpx", "httpcore", "google", "grpc", "urllib3")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the interactive REPL.

    worksync records pass, except the quiet background prefixes below WARNING.
    Everything else (third-party, py.warnings) needs ERROR+.
    """

    def __init__(self, quiet_prefixes: tuple[str, ...] = QUIET_APP_LOGGERS) -> None:
        super().__init__()
        self._quiet = quiet_prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("worksync."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def _level(name: object, default: int) -> int:
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else default


def setup_logging(
    settings=None,
    *,
    log_dir: str | Path | None = None,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Configure the root logger once, before the first log call.

    Console: WORKSYNC_LOG_LEVEL (default INFO), filtered for the REPL.
    File: everything from file_level up, rotated, under the data dir.
    Explicit arguments win over settings. Returns the log file path.
    """
    if log_dir is None:
        log_dir = getattr(settings, "data_dir", None) or ".local/worksync"
    if console_level is None:
        console_level = _level(getattr(settings, "log_level", None), logging.INFO)

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
