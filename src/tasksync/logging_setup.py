# src/tasksync/logging_setup.py

"""
Logging policy.

Two outputs:
- stderr, at the configured level. While the console REPL owns the terminal,
  realtime sync chatter and HTTP access lines are held back there (below
  WARNING) so they do not interleave with prompts;
- `<data_dir>/tasksync.log`, rotated, everything at DEBUG.

Third-party client/server loggers are capped in LIBRARY_LEVELS regardless of mode.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

LOG_FILE_NAME = "tasksync.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LIBRARY_LEVELS: dict[str, str] = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "uvicorn.error": "INFO",
    "uvicorn.access": "INFO",
}


class InteractiveConsoleFilter(logging.Filter):
    """stderr filter used while a console session is running."""

    CHATTY = ("tasksync.realtime.", "uvicorn.access")

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(self.CHATTY):
            return record.levelno >= logging.WARNING
        if record.name == "tasksync" or record.name.startswith("tasksync."):
            return True
        return record.levelno >= logging.WARNING


def level_name(raw: Any, default: str = "INFO") -> str:
    name = str(raw or "").strip().upper()
    return name if name in logging.getLevelNamesMapping() else default


def build_logging_config(
    *,
    level: str = "INFO",
    log_file: Path | None = None,
    interactive: bool = False,
) -> dict[str, Any]:
    handlers: dict[str, dict[str, Any]] = {
        "stderr": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "level": level_name(level),
            "formatter": "plain",
            "filters": ["interactive"] if interactive else [],
        }
    }
    if log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_file),
            "maxBytes": 2_000_000,
            "backupCount": 3,
            "encoding": "utf-8",
            "level": "DEBUG",
            "formatter": "plain",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"interactive": {"()": InteractiveConsoleFilter}},
        "formatters": {"plain": {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT}},
        "handlers": handlers,
        "loggers": {name: {"level": lvl} for name, lvl in LIBRARY_LEVELS.items()},
        "root": {"level": "DEBUG", "handlers": list(handlers)},
    }


def setup_logging(settings: Any) -> Path | None:
    """
    Apply the policy for `settings` (log_level, data_dir, console_enabled).
    Returns the log file path, or None when no data_dir is configured.
    """
    log_file: Path | None = None
    data_dir = getattr(settings, "data_dir", None)
    if data_dir is not None:
        Path(data_dir).mkdir(parents=True, exist_ok=True)
        log_file = Path(data_dir) / LOG_FILE_NAME

    logging.config.dictConfig(
        build_logging_config(
            level=getattr(settings, "log_level", "INFO"),
            log_file=log_file,
            interactive=bool(getattr(settings, "console_enabled", False)),
        )
    )
    logging.captureWarnings(True)
    return log_file
