"""Brief and on-demand request models."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models.item import FeedItem
from models.target import Reason, RiskLevel, Target

FEED_SOURCE = "Yahoo Finance RSS"

MAX_ADHOC_TICKERS = 10


class FeedSnapshot(BaseModel):
    """The feed portion of a Brief: where it came from and what was kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: str = FEED_SOURCE
    url: str
    items: list[FeedItem] = Field(default_factory=list)


class Brief(BaseModel):
    """The persisted result of one run for one target.

    The same payload is written as the target's latest snapshot and as
    an immutable history entry keyed by the capture instant.

    Attributes:
        target: Target the run was for
        feed: Source, URL and selected items
        brief: Digest text sent to the analyst
        recommendation: Analyst output (may be empty)
        reason: Why the run happened (preopen, intraday, postclose, adhoc)
        updated_at: Capture instant of the run
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target: Target
    feed: FeedSnapshot
    brief: str
    recommendation: str
    reason: Reason
    updated_at: datetime

    @property
    def history_id(self) -> str:
        """History document id: capture instant in epoch milliseconds."""
        return str(int(self.updated_at.timestamp() * 1000))

    def to_document(self) -> dict[str, Any]:
        """Serialize for the document store (camelCase, JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AdhocRequest(BaseModel):
    """Payload accepted by the on-demand adapter.

    Unknown keys are ignored. Tickers are uppercased before length checks
    are reported back to the caller.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tickers: list[str] | None = Field(default=None, max_length=MAX_ADHOC_TICKERS)
    topic: str | None = Field(default=None, min_length=2, max_length=64)
    risk_level: RiskLevel | None = None
    page_size: Annotated[int, Field(ge=3, le=15, strict=True)] | None = None

    @field_validator("tickers")
    @classmethod
    def _uppercase(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [ticker.upper() for ticker in value]

    def to_target(self, key: str = "adhoc") -> Target:
        """Build the Target for this request; omitted fields keep Target defaults."""
        return Target(key=key, **self.model_dump(exclude_none=True))
