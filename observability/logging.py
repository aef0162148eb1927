"""Logging setup with run and target context.

Every log record carries the current run id and target key, so the
lines of one target's run can be pulled out of a scheduled invocation
that briefs several targets in sequence.

    - Text or JSON output (LOG_FORMAT)
    - Console plus rotating file handler, console-only if LOG_DIR is unwritable
    - Context set per run via set_run_context()

Usage:
    >>> from observability.logging import setup_logging, set_run_context
    >>> setup_logging(config)
    >>> set_run_context(run_id="abc123", target="us_market")
    >>> logger.info("Run started")  # Tagged with abc123/us_market
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler, RotatingFileHandler
from typing import Any

LOG_FILENAME = "briefs.log"

run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")
target_var: contextvars.ContextVar[str] = contextvars.ContextVar("target", default="-")

# Attributes every LogRecord has; anything else came in via `extra=`
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "run_id", "target", "message",
})


def set_run_context(run_id: str, target: str = "-") -> None:
    """Tag subsequent log records with a run id and target key."""
    run_id_var.set(run_id)
    target_var.set(target)


def clear_context() -> None:
    """Reset run and target context."""
    run_id_var.set("-")
    target_var.set("-")


class ContextFilter(logging.Filter):
    """Injects run_id and target into every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.target = target_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """Single-line JSON records for log aggregation.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...",
         "run_id": "...", "target": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
            "target": getattr(record, "target", "-"),
        }

        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Format: TIMESTAMP [LEVEL] [run_id/target] logger: message"""

    def __init__(self, include_date: bool = False):
        datefmt = "%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S"
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(run_id)s/%(target)s] %(name)s: %(message)s",
            datefmt=datefmt,
        )


def _file_handler(config: Any) -> logging.Handler:
    """Size-based rotation when LOG_MAX_BYTES is set, daily otherwise."""
    config.log_dir.mkdir(parents=True, exist_ok=True)
    path = config.log_dir / LOG_FILENAME
    if config.log_max_bytes > 0:
        return RotatingFileHandler(
            path, maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count, encoding="utf-8",
        )
    return TimedRotatingFileHandler(
        path, when="midnight", backupCount=config.log_backup_count, encoding="utf-8",
    )


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Install console (stderr) and file handlers on the root logger.

    Args:
        config: Application configuration with logging settings
        verbose: If True, use DEBUG level for the console

    Returns:
        False if the log directory was unwritable and only the console
        handler is installed
    """
    as_json = config.log_format == "json"
    context_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # stdout is reserved for command output
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO))
    console.setFormatter(JsonFormatter() if as_json else TextFormatter())
    console.addFilter(context_filter)
    root.addHandler(console)

    for noisy in ("aiohttp", "openai", "httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    try:
        file_handler = _file_handler(config)
    except OSError as e:
        print(f"Warning: log directory '{config.log_dir}' unusable ({e}); logging to console only.", file=sys.stderr)
        return False

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JsonFormatter() if as_json else TextFormatter(include_date=True))
    file_handler.addFilter(context_filter)
    root.addHandler(file_handler)

    return True
