"""Briefing target model.

A Target names one briefing subject. Tickers take precedence over the
free-text topic when choosing the feed and labelling the prompt; with
neither set, the broad-market feed is used.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RiskLevel = Literal["low", "medium", "high"]
Reason = Literal["preopen", "intraday", "postclose", "adhoc"]

REASONS: tuple[str, ...] = ("preopen", "intraday", "postclose", "adhoc")

DEFAULT_PAGE_SIZE = 8


class Target(BaseModel):
    """A named briefing subject.

    Attributes:
        key: Stable identifier, used as the store's document key
        tickers: Ordered ticker symbols (e.g. ["AAPL", "NVDA"])
        topic: Free-text subject used when no tickers are given
        risk_level: Risk tolerance passed to the analyst
        page_size: Requested headline count (floor of 3 applied later)

    Example:
        >>> Target(key="us_market", topic="stock market").label
        'stock market'
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: str = Field(min_length=1, description="Store document key")
    tickers: list[str] | None = Field(default=None, description="Ticker symbols")
    topic: str | None = Field(default=None, description="Free-text topic")
    risk_level: RiskLevel = Field(default="medium", description="Risk tolerance")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, description="Headline cap")

    @property
    def label(self) -> str:
        """Topic label for prompts: tickers, else topic, else 'market'."""
        if self.tickers:
            return ", ".join(self.tickers)
        return self.topic or "market"

    def to_document(self) -> dict:
        """Serialize for storage using the external camelCase field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return f"Target({self.key}, '{self.label}')"
