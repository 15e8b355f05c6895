"""
Trust Debt Structured Logging

Provides consistent logging with:
- Run ID tracking across pipeline stages
- JSON structured output (optional)
- Level-based filtering
- Stage timing

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import logging
import sys
import time
import json
from datetime import datetime
from typing import Optional
from contextvars import ContextVar

# Context variable for pipeline run tracking
run_id_var: ContextVar[str] = ContextVar("run_id", default="")

EXTRA_FIELDS = ("duration_ms", "stage_id", "status", "commit_hash", "source_path")


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured log entries.

    In JSON mode, outputs machine-readable JSON.
    In text mode, outputs human-readable logs with context.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        run_id = run_id_var.get()

        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if self.json_output:
            return json.dumps(log_data, default=str)

        parts = [
            f"[{log_data['timestamp']}]",
            f"[{record.levelname:8}]",
        ]

        if run_id:
            parts.append(f"[{run_id}]")

        parts.append(record.getMessage())

        extras = []
        for key in ("stage_id", "status", "duration_ms"):
            if hasattr(record, key):
                extras.append(f"{key}={getattr(record, key)}")

        if extras:
            parts.append(f"({', '.join(extras)})")

        result = " ".join(parts)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON logs (for CI)
        log_file: Optional file path for log output

    Returns:
        Root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(json_output=json_output))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(json_output=True))  # Always JSON to file
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


def make_run_id(now: Optional[datetime] = None) -> str:
    """Build a run identifier from a UTC timestamp."""
    now = now or datetime.utcnow()
    return "run-" + now.strftime("%Y%m%dT%H%M%S%fZ")


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set or generate the run ID for current context."""
    if run_id is None:
        run_id = make_run_id()
    run_id_var.set(run_id)
    return run_id


def get_run_id() -> str:
    """Get current run ID."""
    return run_id_var.get()


class Timer:
    """
    Context manager for timing pipeline stages.

    Usage:
        with Timer(logger, "keyword indexing", stage_id="keyword_index"):
            index(corpus)
    """

    def __init__(self, logger: logging.Logger, operation: str,
                 level: int = logging.DEBUG, stage_id: Optional[str] = None):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.stage_id = stage_id
        self.start_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000
        extra = {"duration_ms": round(self.duration_ms, 2)}
        if self.stage_id:
            extra["stage_id"] = self.stage_id

        if exc_type:
            self.logger.log(logging.ERROR, f"Operation failed: {self.operation}", extra=extra)
        else:
            self.logger.log(self.level, f"Operation completed: {self.operation}", extra=extra)

        return False  # Don't suppress exceptions


__all__ = [
    "setup_logging",
    "get_logger",
    "make_run_id",
    "set_run_id",
    "get_run_id",
    "Timer",
    "StructuredFormatter",
]
