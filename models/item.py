"""Feed item models.

RawItem is what the feed decoder hands to the item pipeline: a loose
mapping whose fields may be missing or oddly typed. NormalizedItem is
the canonical form produced by digest.normalize_item().

Deduplication Strategy:
    Items are deduplicated by a fingerprint of the title only:
    - Lowercased
    - Whitespace runs collapsed to a single space
    - Truncated to 140 characters

    Source, link and timestamp are ignored, so the same headline
    republished later in the feed counts as the same story.
"""

import re
from datetime import datetime
from typing import Any, TypedDict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FINGERPRINT_LENGTH = 140

_WHITESPACE = re.compile(r"\s+")


class RawItem(TypedDict, total=False):
    """Feed entry as decoded, before normalization.

    `link` is either a plain string or a mapping exposing `href`.
    """

    title: Any
    link: Any
    pubDate: Any
    description: Any


def fingerprint(title: str) -> str:
    """Compute the dedup key for a headline.

    Example:
        >>> fingerprint("Fed   Holds Rates")
        'fed holds rates'
    """
    return _WHITESPACE.sub(" ", title.lower())[:FINGERPRINT_LENGTH]


class NormalizedItem(BaseModel):
    """A feed entry in canonical form.

    Attributes:
        title: Trimmed headline (never empty)
        link: Article URL, empty if the entry had none
        description: Raw description text (HTML not yet stripped)
        published_at: Publication time; epoch start when unknown
    """

    title: str = Field(min_length=1, description="Trimmed headline")
    link: str = Field(default="", description="Article URL")
    description: str = Field(default="", description="Raw HTML/text from feed")
    published_at: datetime = Field(description="Publication timestamp (UTC)")

    @property
    def fingerprint(self) -> str:
        """Dedup key derived from the title."""
        return fingerprint(self.title)

    def to_feed_item(self) -> "FeedItem":
        """Project onto the persisted item shape."""
        return FeedItem(title=self.title, link=self.link, published_at=self.published_at)

    def __str__(self) -> str:
        return f"Item('{self.title[:50]}', {self.published_at.isoformat()})"


class FeedItem(BaseModel):
    """Item as stored in a Brief's feed snapshot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    link: str = ""
    published_at: datetime
