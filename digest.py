"""Item pipeline: normalize, deduplicate, rank, select and render headlines.

This is a pure transformation from raw feed entries to the bounded,
ranked headline set and the compact digest text sent to the analyst.
No network or storage access happens here.

Pipeline Flow:
    1. NORMALIZE: Canonical title/link/description/timestamp per entry
    2. FILTER: Drop entries whose trimmed title is empty
    3. DEDUP: Keep the first entry per title fingerprint (feed order)
    4. RANK: Stable sort by publication time, newest first
    5. SELECT: Keep max(3, page_size) items
    6. RENDER: One bullet line per item, joined with newlines

Dedup runs before ranking, so a later, more recent duplicate never
displaces the first-seen copy of a story.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from models.item import NormalizedItem, RawItem
from models.target import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MIN_SELECTED = 3
MAX_DESCRIPTION_CHARS = 180
BULLET = "• "
ELLIPSIS = "…"

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ProcessedFeed:
    """Selected items and their rendered digest.

    Attributes:
        items: Selected items, newest first
        digest_lines: One bullet line per selected item
    """

    items: list[NormalizedItem] = field(default_factory=list)
    digest_lines: list[str] = field(default_factory=list)

    @property
    def digest_text(self) -> str:
        """Digest lines joined for prompt embedding and storage."""
        return "\n".join(self.digest_lines)


def parse_pub_date(value: Any) -> datetime:
    """Parse a free-text feed date, falling back to the epoch start.

    Accepts RFC 2822 dates (RSS pubDate) and ISO 8601 (Atom). Naive
    results are taken as UTC.
    """
    if not value:
        return EPOCH
    text = str(value).strip()
    parsed: datetime | None = None
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError, OverflowError):
        try:
            parsed = datetime.fromisoformat(text)
        except (ValueError, OverflowError):
            logger.debug("Unparsable pubDate, using epoch: %s", text[:40])
            return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def resolve_link(value: Any) -> str:
    """Resolve a link given as a string or as a mapping with `href`."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        href = value.get("href")
        if href is None:
            return ""
        return str(href)
    return ""


def _text(value: Any) -> str:
    """Coerce a loosely typed field to text; missing or falsy becomes ''."""
    if not value:
        return ""
    return str(value)


def normalize_item(raw: RawItem | Mapping[str, Any]) -> NormalizedItem | None:
    """Normalize one raw entry.

    Returns:
        The canonical item, or None when the trimmed title is empty
    """
    title = _text(raw.get("title")).strip()
    if not title:
        return None
    return NormalizedItem(
        title=title,
        link=resolve_link(raw.get("link")),
        description=_text(raw.get("description")),
        published_at=parse_pub_date(raw.get("pubDate")),
    )


def normalize_items(raw_items: Iterable[RawItem | Mapping[str, Any]]) -> list[NormalizedItem]:
    """Normalize entries and drop those without a title, keeping feed order."""
    items = []
    for raw in raw_items:
        item = normalize_item(raw)
        if item is not None:
            items.append(item)
    return items


def dedupe_items(items: Iterable[NormalizedItem]) -> list[NormalizedItem]:
    """Keep the first item per fingerprint, preserving relative order."""
    seen: set[str] = set()
    unique = []
    for item in items:
        key = item.fingerprint
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def rank_items(items: Iterable[NormalizedItem]) -> list[NormalizedItem]:
    """Sort newest first; ties keep their incoming order."""
    return sorted(items, key=lambda item: item.published_at, reverse=True)


def selection_size(page_size: int | None) -> int:
    """Number of items to keep: page_size (default 8), never below 3."""
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    return max(MIN_SELECTED, page_size)


def clean_description(description: str) -> str:
    """Strip tags, collapse whitespace and cap at 180 chars with an ellipsis."""
    clean = _TAG_PATTERN.sub("", description)
    clean = _WHITESPACE.sub(" ", clean).strip()
    if len(clean) > MAX_DESCRIPTION_CHARS:
        return clean[:MAX_DESCRIPTION_CHARS] + ELLIPSIS
    return clean


def summarize_line(title: str, description: str = "") -> str:
    """Render one digest line (without the bullet).

    Example:
        >>> summarize_line("Fed holds rates", "<p>No change</p>")
        'Fed holds rates — No change'
    """
    short = clean_description(description)
    if short:
        return f"{title} — {short}"
    return title


def render_digest(items: Iterable[NormalizedItem]) -> list[str]:
    """Render bullet lines for the selected items."""
    return [f"{BULLET}{summarize_line(item.title, item.description)}" for item in items]


def process_items(
    raw_items: Iterable[RawItem | Mapping[str, Any]],
    page_size: int | None = DEFAULT_PAGE_SIZE,
) -> ProcessedFeed:
    """Reduce raw feed entries to the ranked, bounded digest.

    Args:
        raw_items: Entries as decoded from the feed, in feed order
        page_size: Requested item count (None means the default of 8;
                   values below 3 are raised to 3)

    Returns:
        ProcessedFeed with selected items and digest lines

    Example:
        >>> processed = process_items([{"title": "Tech rallies"}], page_size=3)
        >>> processed.digest_text
        '• Tech rallies'
    """
    normalized = normalize_items(raw_items)
    unique = dedupe_items(normalized)
    selected = rank_items(unique)[:selection_size(page_size)]

    logger.debug(
        "Items processed | normalized=%d unique=%d selected=%d",
        len(normalized), len(unique), len(selected),
    )
    return ProcessedFeed(items=selected, digest_lines=render_digest(selected))
