"""
Centralized logging configuration.

Human-readable console output during development, structured JSON in
production and in the optional log file. Every line emitted while a capture
or ingest job runs carries that job's id.

All modules should use:
    from copyhelper.logging_config import get_logger
    logger = get_logger(__name__)
"""

import json
import logging
import os
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from copyhelper.config import data_dir, get

ROOT_LOGGER = "copyhelper"

# ---------------------------------------------------------------------------
# Job id context (one capture or one ingest batch)
# ---------------------------------------------------------------------------
_job_id: ContextVar[str] = ContextVar("job_id", default="")


def get_job_id() -> str:
    """Return the current job id, or empty string outside a job."""
    return _job_id.get()


def new_job_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def job_scope(job_id: Optional[str] = None) -> Iterator[str]:
    """Tag every log record emitted inside the block with a job id."""
    token = _job_id.set(job_id or new_job_id())
    try:
        yield _job_id.get()
    finally:
        _job_id.reset(token)


def is_production() -> bool:
    env = os.environ.get("COPYHELPER_ENV", os.environ.get("ENV", "development"))
    return env.lower() == "production"


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------
class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, context, jobId, message."""

    LEVEL_MAP = {
        "DEBUG": "debug",
        "INFO": "info",
        "WARNING": "warn",
        "ERROR": "error",
        "CRITICAL": "fatal",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": self.LEVEL_MAP.get(record.levelname, record.levelname.lower()),
            "context": record.name,
            "jobId": get_job_id() or None,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["stackTrace"] = self.formatException(record.exc_info)
        # Extra structured fields passed via `extra={"data": {...}}`
        if hasattr(record, "data") and isinstance(record.data, dict):
            entry["data"] = record.data
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        job = get_job_id()
        job_str = f" [{job}]" if job else ""
        base = f"{record.levelname}:\t{ts}\t{record.name}{job_str}\t{record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


class RetentionFileHandler(logging.FileHandler):
    """Appends to copyhelper.log and truncates it once it outlives the retention window."""

    def __init__(self, log_dir: Path, retention_hours: int):
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = log_dir / "copyhelper.log"
        self.retention_seconds = retention_hours * 3600
        self._last_cleanup = 0.0
        self._truncate_if_stale()
        super().__init__(str(self.log_file), mode="a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if time.time() - self._last_cleanup > 3600:
            # Append-mode stream keeps writing at the new end of file.
            self._truncate_if_stale()
        super().emit(record)

    def _truncate_if_stale(self) -> bool:
        self._last_cleanup = time.time()
        try:
            modified = self.log_file.stat().st_mtime if self.log_file.exists() else None
        except OSError:
            return False
        if modified is not None and time.time() - modified > self.retention_seconds:
            self.log_file.write_text("", encoding="utf-8")
            return True
        return False


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------
_configured = False


def configure_logging(
    log_level: Optional[str] = None,
    enable_file_logging: Optional[bool] = None,
) -> None:
    """Configure the copyhelper logger tree.

    Call once at startup (the CLI does). get_logger() falls back to the
    values in copyhelper.toml when nothing configured it first.
    """
    global _configured

    if log_level is None:
        log_level = get("logging", "level")
    if enable_file_logging is None:
        enable_file_logging = get("logging", "file_logging")

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        StructuredJsonFormatter() if is_production() else DevelopmentFormatter()
    )
    root_logger.addHandler(console)

    if enable_file_logging:
        try:
            file_handler = RetentionFileHandler(
                data_dir() / "logs", get("logging", "retention_hours")
            )
            file_handler.setFormatter(StructuredJsonFormatter())
            root_logger.addHandler(file_handler)
        except OSError:
            root_logger.warning("Could not initialize file logging")

    root_logger.propagate = False
    _configured = True


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a child of the copyhelper logger (name is typically __name__)."""
    if not _configured:
        configure_logging()

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    logger = logging.getLogger(f"{ROOT_LOGGER}.{name}")
    logger.propagate = True
    return logger
