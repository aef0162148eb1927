"""Pydantic models for the market briefing pipeline.

Target:
    One briefing subject (tickers or a free-text topic) with risk level
    and headline page size.

RawItem / NormalizedItem:
    Feed entries before and after normalization. RawItem is a loose
    mapping straight from the feed parser; NormalizedItem is canonical.

Brief:
    The persisted result of a single run (feed snapshot, digest,
    recommendation, reason, timestamp).

AdhocRequest:
    Validated payload for on-demand runs.

Example:
    >>> from models import Target
    >>> target = Target(key="tech", tickers=["AAPL", "NVDA"])
    >>> target.page_size
    8
"""

from models.target import Target, RiskLevel, Reason, REASONS
from models.item import RawItem, NormalizedItem, FeedItem, fingerprint
from models.brief import Brief, FeedSnapshot, AdhocRequest

__all__ = [
    "Target",
    "RiskLevel",
    "Reason",
    "REASONS",
    "RawItem",
    "NormalizedItem",
    "FeedItem",
    "fingerprint",
    "Brief",
    "FeedSnapshot",
    "AdhocRequest",
]
