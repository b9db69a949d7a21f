"""
Logging setup for StoryComposer.

Warnings and errors go to stderr; everything at the configured level goes
to a rotating per-run file under the platform log directory.
"""

import logging
import logging.handlers
import os
import platform
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .constants import APP_NAME, VERSION

LOG_FILE_PREFIX = "storycomposer_"
KEEP_LOG_FILES = 10

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
CONSOLE_FORMAT = '%(levelname)s - %(message)s'


def get_log_dir() -> Path:
    """Platform log directory; STORYCOMPOSER_LOG_DIR overrides it."""
    override = os.getenv("STORYCOMPOSER_LOG_DIR")
    if override:
        return Path(override)

    system = platform.system()
    if system == "Windows":
        return Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming")) / APP_NAME / "logs"
    if system == "Darwin":
        return Path.home() / "Library" / "Logs" / APP_NAME
    state = Path(os.getenv("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    return state / APP_NAME / "logs"


def prune_old_logs(log_dir: Path, keep: int = KEEP_LOG_FILES) -> int:
    """Delete all but the newest ``keep`` run logs. Returns how many were removed."""
    runs = sorted(log_dir.glob(f"{LOG_FILE_PREFIX}*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    removed = 0
    for stale in runs[keep:]:
        try:
            stale.unlink()
            removed += 1
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not remove old log {stale}: {e}")
    return removed


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=2,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(log_level=logging.INFO, log_to_file=True, log_dir: Optional[Path] = None,
                  console_level=logging.WARNING):
    """
    Configure the root logger for a StoryComposer run.

    Python warnings (such as skipped compositing layers) are captured into
    the log as well.

    Args:
        log_level: Level for the root logger and the log file
        log_to_file: Also write a per-run log file
        log_dir: Directory for log files (default: get_log_dir())
        console_level: Level for the stderr handler

    Returns:
        Path of the run's log file, or None when not logging to a file
    """
    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_console_handler(console_level))
    logging.captureWarnings(True)

    if not log_to_file:
        return None

    log_dir = Path(log_dir) if log_dir else get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    prune_old_logs(log_dir, KEEP_LOG_FILES - 1)

    log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d_%H%M%S}.log"
    root.addHandler(_file_handler(log_file, log_level))
    root.info(
        f"{APP_NAME} {VERSION} on Python {platform.python_version()} "
        f"({platform.platform()}), log file {log_file}"
    )
    return log_file


class ErrorLogger:
    """
    Context manager that logs an operation's exception with its traceback.

    Example:
        with ErrorLogger("compose", logger, scene="opening"):
            compose(...)
    """

    def __init__(self, operation_name, logger=None, reraise=True, **context):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger()
        self.reraise = reraise
        self.context = context
        self.failed = False
        self.error: Optional[BaseException] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False
        self.failed = True
        self.error = exc_val
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        self.logger.error(
            f"{self.operation_name} failed{f' ({details})' if details else ''}: "
            f"{exc_type.__name__}: {exc_val}",
            exc_info=(exc_type, exc_val, exc_tb)
        )
        return not self.reraise
