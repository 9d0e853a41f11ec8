"""Structured local logging and crash hook setup."""

from __future__ import annotations

import faulthandler
import json
import logging
import logging.handlers
import os
import platform
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any


_LOGGER_NAME = "strandserver"
_EXTRA_FIELDS = ("event", "crash_id", "code", "frame", "peer", "stats")


def _state_root() -> Path:
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "StrandServer"
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Application Support" / "StrandServer"
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "strandserver"


def log_dir() -> Path:
    path = _state_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(
    keep_files: int = 7,
    console: bool = True,
    level: str = "INFO",
    directory: Path | None = None,
) -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    path = (directory or log_dir()) / "strandserver.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(stream_handler)

    logger.info("logging configured", extra={"event": "logging_configured"})
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if name:
        return logging.getLogger(f"{_LOGGER_NAME}.{name}")
    return logging.getLogger(_LOGGER_NAME)


_fault_stream: IO[str] | None = None


def _enable_fault_handler(logger: logging.Logger, directory: Path) -> Path:
    global _fault_stream
    path = directory / "fault.log"
    if _fault_stream is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        _fault_stream = path.open("a", encoding="utf-8")
    faulthandler.enable(file=_fault_stream, all_threads=True)
    logger.info(f"fault dumps go to {path}", extra={"event": "fault_handler_enabled"})
    return path


def _crash_reporter(logger: logging.Logger, event: str):
    def report(exc_info) -> str:
        crash_id = str(uuid.uuid4())
        logger.critical(
            f"{event.replace('_', ' ')} crash_id={crash_id}",
            exc_info=exc_info,
            extra={"event": event, "crash_id": crash_id},
        )
        return crash_id

    return report


def install_crash_hooks(directory: Path | None = None) -> None:
    """Route uncaught exceptions from any thread into the log with a crash id."""
    logger = get_logger()
    report_main = _crash_reporter(logger, "uncaught_exception")
    report_thread = _crash_reporter(logger, "thread_exception")

    def _excepthook(exc_type, exc_value, exc_tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        report_main((exc_type, exc_value, exc_tb))

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        report_thread((args.exc_type, args.exc_value, args.exc_traceback))

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook
    _enable_fault_handler(logger, directory or log_dir())
