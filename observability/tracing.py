"""Optional Logfire spans for briefing runs.

Tracing is off unless ENABLE_LOGFIRE is set. Once configured, every
pipeline run opens a ``brief_run`` span and the OpenAI client is
instrumented so the analyst request nests under it. Without logfire
installed the spans degrade to a DEBUG timing line.

Install with ``pip install market-briefs[tracing]``.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing switch."""
    enabled: bool = False
    service_name: str = "market-briefs"


_context = TracingContext()


def tracing_enabled() -> bool:
    return _context.enabled


def setup_tracing(
    enabled: bool = False,
    service_name: str = "market-briefs",
    token: str = "",
) -> TracingContext:
    """Turn Logfire on for this process.

    A missing package or a configuration failure leaves tracing off and
    is logged; briefing continues either way.
    """
    _context.service_name = service_name
    _context.enabled = False
    if not enabled:
        return _context

    try:
        import logfire
    except ImportError:
        logger.warning("ENABLE_LOGFIRE is set but logfire is not installed")
        return _context

    try:
        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_openai()
    except Exception as e:
        logger.error("Logfire setup failed | error=%s", e)
        return _context

    _context.enabled = True
    logger.info("Tracing on | service=%s", service_name)
    return _context


@contextmanager
def trace_operation(name: str, attributes: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    """Run the body inside a span named ``name``.

    Yields a dict; whatever the body stores there is attached to the
    span when the body finishes without error.
    """
    late_attrs: dict[str, Any] = {}
    started = time.perf_counter()
    try:
        if not _context.enabled:
            yield late_attrs
            return

        import logfire

        with logfire.span(name, **(attributes or {})) as span:
            yield late_attrs
            for key, value in late_attrs.items():
                span.set_attribute(key, value)
    finally:
        logger.debug("%s took %.2fs", name, time.perf_counter() - started)
