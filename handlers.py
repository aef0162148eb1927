"""Invocation adapters: scheduled runs and on-demand requests.

Scheduled:
    run_scheduled() briefs every configured target in sequence. Each
    target is its own error boundary: a failure is logged and recorded,
    and the loop moves on to the next target. The report lists every
    outcome so the caller can decide on an exit status.

On-demand:
    handle_adhoc() checks that a caller identity is present, validates
    the payload, and runs the pipeline once for a synthetic "adhoc"
    target. Failures surface as OnDemandError with a code the request
    surface can map to its own status values.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from pydantic import ValidationError

from models.brief import AdhocRequest
from models.target import Target
from pipeline import Pipeline

logger = logging.getLogger(__name__)

ADHOC_KEY = "adhoc"


class OnDemandError(Exception):
    """Caller-visible failure of an on-demand request.

    Attributes:
        code: 'unauthenticated', 'invalid-argument' or 'internal'
        message: Human-readable explanation
        details: Validation errors for 'invalid-argument', else None
    """

    def __init__(self, code: str, message: str, details: Any = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{code}: {message}")


@dataclass
class TargetOutcome:
    """Result of one target within a scheduled invocation."""

    key: str
    ok: bool
    item_count: int = 0
    error: str = ""


@dataclass
class ScheduledRunReport:
    """All outcomes of a scheduled invocation, in target order."""

    reason: str
    outcomes: list[TargetOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "reason": self.reason,
            "succeeded": self.succeeded,
            "failed": len(self.failures),
            "outcomes": [asdict(o) for o in self.outcomes],
        }


async def run_scheduled(
    pipeline: Pipeline,
    targets: list[Target],
    reason: str,
) -> ScheduledRunReport:
    """Brief each target in order, continuing past failures.

    Args:
        pipeline: Pipeline used for every target
        targets: Target list loaded at startup
        reason: Run reason tag (preopen, intraday, postclose)

    Returns:
        ScheduledRunReport with one outcome per target
    """
    report = ScheduledRunReport(reason=reason)
    logger.info("Scheduled run started | reason=%s targets=%d", reason, len(targets))

    for target in targets:
        try:
            result = await pipeline.run(target, reason)
            report.outcomes.append(TargetOutcome(key=target.key, ok=True, item_count=result.item_count))
        except asyncio.CancelledError:
            logger.info("Scheduled run cancelled | reason=%s at=%s", reason, target.key)
            raise
        except Exception as e:
            logger.error(
                "Target failed | key=%s reason=%s type=%s error=%s",
                target.key, reason, type(e).__name__, e, exc_info=True,
            )
            report.outcomes.append(
                TargetOutcome(key=target.key, ok=False, error=f"{type(e).__name__}: {e}")
            )

    if report.failures:
        logger.warning(
            "Scheduled run done with failures | reason=%s ok=%d failed=%s",
            reason, report.succeeded, ",".join(o.key for o in report.failures),
        )
    else:
        logger.info("Scheduled run done | reason=%s ok=%d", reason, report.succeeded)
    return report


def parse_adhoc_request(payload: Any) -> AdhocRequest:
    """Validate an on-demand payload.

    Raises:
        OnDemandError: 'invalid-argument' if the payload is malformed
    """
    try:
        return AdhocRequest.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        raise OnDemandError(
            "invalid-argument",
            "Invalid payload",
            details=e.errors(include_url=False, include_context=False),
        ) from e


async def handle_adhoc(
    pipeline: Pipeline,
    payload: Any,
    caller: str | None,
) -> dict[str, Any]:
    """Serve one on-demand briefing request.

    Args:
        pipeline: Pipeline to run
        payload: Request body (tickers, topic, riskLevel, pageSize)
        caller: Authenticated caller id from the request surface, or None

    Returns:
        {"ok": True, "feed": {...}, "brief": str, "recommendation": str}

    Raises:
        OnDemandError: 'unauthenticated', 'invalid-argument' or 'internal'
    """
    if not caller:
        raise OnDemandError("unauthenticated", "Sign in required.")

    request = parse_adhoc_request(payload)
    target = request.to_target(ADHOC_KEY)
    logger.info("On-demand request | caller=%s target=%s", caller, target)

    try:
        result = await pipeline.run(target, "adhoc")
    except Exception as e:
        logger.error("On-demand run failed | caller=%s error=%s", caller, e, exc_info=True)
        raise OnDemandError("internal", f"Briefing failed: {type(e).__name__}") from e

    document = result.brief.to_document()
    return {
        "ok": True,
        "feed": document["feed"],
        "brief": document["brief"],
        "recommendation": document["recommendation"],
    }
