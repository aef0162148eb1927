"""Logging and optional tracing for the briefing pipeline.

setup_logging / set_run_context:
    Console + rotating file logging tagged with run id and target key.

setup_tracing / trace_operation:
    Optional Logfire spans around each run, with OpenAI instrumentation.

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True)
    >>> with trace_operation("brief_run", {"key": "us_market"}):
    ...     pass
"""

from observability.logging import setup_logging, set_run_context, clear_context
from observability.tracing import setup_tracing, trace_operation, tracing_enabled, TracingContext

__all__ = [
    "setup_logging",
    "set_run_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "tracing_enabled",
    "TracingContext",
]
