"""Logging configuration.

Provides:
  - Human-readable colored output for interactive runs
  - JSON-formatted output for unattended campaigns
  - Worker / iteration correlation on every record emitted by a worker
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any

_CONTEXT_KEYS = ("worker_id", "iteration", "artifact", "exit_code", "duration_ms")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in _CONTEXT_KEYS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored human-readable formatter."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        prefix = f"{color}{ts} [{record.levelname:>8s}]{self.RESET}"
        msg = record.getMessage()

        worker_id = getattr(record, "worker_id", None)
        if worker_id is not None:
            iteration = getattr(record, "iteration", None)
            tag = f"TH:{worker_id}" if iteration is None else f"TH:{worker_id} LOOP:{iteration}"
            msg = f"[{tag}] {msg}"

        base = f"{prefix} {record.name}: {msg}"
        if record.exc_info and record.exc_info[1]:
            base += "\n" + self.formatException(record.exc_info)
        return base


def setup_logging(env: str = "development", log_level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        env: Application environment (development/staging/production)
        log_level: Minimum log level
    """
    root = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root.setLevel(level)

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if env in ("staging", "production"):
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevFormatter())

    handler.addFilter(WorkerLogFilter())

    root.addHandler(handler)


_worker_context = threading.local()


def bind_worker_context(worker_id: int | None, iteration: int | None = None) -> None:
    """Attach worker/iteration ids to every record logged by this thread."""
    _worker_context.worker_id = worker_id
    _worker_context.iteration = iteration


def clear_worker_context() -> None:
    bind_worker_context(None, None)


class WorkerLogFilter(logging.Filter):
    """Filter that stamps the calling thread's worker context onto records."""

    def filter(self, record: logging.LogRecord) -> bool:
        worker_id = getattr(_worker_context, "worker_id", None)
        if worker_id is not None and not hasattr(record, "worker_id"):
            record.worker_id = worker_id  # type: ignore[attr-defined]
            record.iteration = getattr(_worker_context, "iteration", None)  # type: ignore[attr-defined]
        return True
