"""Async RSS feed retrieval for briefing targets.

This module builds the Yahoo Finance headline feed URL for a target,
fetches it, and decodes the body into loosely typed RawItem mappings
for the item pipeline.

Decoding happens in two steps:
    1. feedparser turns the body into an intermediate tree, whatever
       the dialect (RSS 2.0 channel/item or Atom feed/entry).
    2. extract_raw_items() maps that tree onto RawItem. It is total:
       unknown shapes, malformed documents and missing fields produce
       fewer or sparser items, never an exception.

Error Handling Strategy:
    - Any non-200 response raises FetchError; the caller does not retry
    - Network errors (DNS, timeouts, resets) propagate unchanged
    - Parse problems yield an empty item list
"""

import logging
import ssl
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import aiohttp
import certifi
import feedparser

from models.item import RawItem
from models.target import Target

logger = logging.getLogger(__name__)

FEED_BASE_URL = "https://feeds.finance.yahoo.com/rss/2.0/headline"

# S&P 500, Nasdaq 100, Dow Jones, Nasdaq Composite
BROAD_MARKET_SYMBOLS = "^GSPC,^NDX,^DJI,^IXIC"

# Browser-like User-Agent to avoid being blocked by some servers
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class FetchError(Exception):
    """Feed request returned a non-success HTTP status."""

    def __init__(self, status: int, url: str = ""):
        self.status = status
        self.url = url
        super().__init__(f"RSS fetch failed: {status}")


@dataclass
class FeedResult:
    """Outcome of one feed fetch.

    Attributes:
        url: Feed URL that was requested
        raw_items: Decoded entries in feed order
    """

    url: str
    raw_items: list[RawItem] = field(default_factory=list)


def feed_url_for(target: Target) -> str:
    """Build the feed URL for a target.

    Tickers are comma-joined and URL-encoded into the `s` parameter.
    Targets without tickers get the broad-market index feed.

    Example:
        >>> feed_url_for(Target(key="t", tickers=["AAPL", "MSFT"]))
        'https://feeds.finance.yahoo.com/rss/2.0/headline?s=AAPL%2CMSFT&region=US&lang=en-US'
    """
    if target.tickers:
        symbols = quote(",".join(target.tickers), safe="")
        return f"{FEED_BASE_URL}?s={symbols}&region=US&lang=en-US"
    return f"{FEED_BASE_URL}?s={BROAD_MARKET_SYMBOLS}&region=US&lang=en-US"


def _ssl_context() -> ssl.SSLContext:
    """SSL context backed by the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def _entry_link(entry: Any) -> Any:
    """Pick the entry link: a plain string, or an {'href': ...} mapping.

    RSS items and most Atom entries expose `link` directly. Atom entries
    that only carry a `links` list fall back to the alternate (or first)
    link object.
    """
    link = entry.get("link")
    if link:
        return link
    links = entry.get("links") or []
    for candidate in links:
        if candidate.get("rel", "alternate") == "alternate" and candidate.get("href"):
            return {"href": candidate.get("href")}
    if links:
        return {"href": links[0].get("href", "")}
    return None


def _entry_description(entry: Any) -> Any:
    """Description, summary, or first Atom content block."""
    text = entry.get("description") or entry.get("summary")
    if text:
        return text
    content = entry.get("content") or []
    if content:
        return content[0].get("value")
    return None


def extract_raw_items(parsed: Any) -> list[RawItem]:
    """Map a feedparser result onto RawItem mappings.

    Recognizes RSS (`channel.item`) and Atom (`feed.entry`) documents;
    anything else, including a document with neither, yields an empty list.

    Args:
        parsed: Result of feedparser.parse()

    Returns:
        Raw items in feed order (fields present only when the entry had them)
    """
    version = parsed.get("version") or ""
    entries = parsed.get("entries") or []

    if not entries:
        if parsed.get("bozo"):
            logger.debug("Feed unparsable | error=%s", parsed.get("bozo_exception"))
        return []

    if not version.startswith(("rss", "atom")):
        logger.debug("Feed dialect unrecognized | version=%s entries=%d", version or "-", len(entries))

    items: list[RawItem] = []
    for entry in entries:
        item: RawItem = {}
        if "title" in entry:
            item["title"] = entry.get("title")
        link = _entry_link(entry)
        if link is not None:
            item["link"] = link
        pub_date = entry.get("published") or entry.get("updated")
        if pub_date:
            item["pubDate"] = pub_date
        description = _entry_description(entry)
        if description is not None:
            item["description"] = description
        items.append(item)

    return items


async def _fetch_body(session: aiohttp.ClientSession, url: str, timeout: int) -> bytes:
    """GET the feed and return the raw body.

    Raises:
        FetchError: On any non-200 status
    """
    async with session.get(
        url,
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={"User-Agent": USER_AGENT},
        ssl=_ssl_context(),
    ) as resp:
        if resp.status != 200:
            logger.warning("Feed %s: HTTP %d", url, resp.status)
            raise FetchError(resp.status, url)
        return await resp.read()


async def fetch_feed(
    target: Target,
    timeout: int = 30,
    session: aiohttp.ClientSession | None = None,
) -> FeedResult:
    """Fetch and decode the headline feed for a target.

    Args:
        target: Briefing target that selects the feed
        timeout: Total request timeout in seconds
        session: Existing client session (a private one is opened if None)

    Returns:
        FeedResult with the requested URL and raw items

    Raises:
        FetchError: If the feed responds with a non-success status

    Example:
        >>> result = await fetch_feed(Target(key="tech", tickers=["NVDA"]))
        >>> len(result.raw_items)
        20
    """
    url = feed_url_for(target)

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            body = await _fetch_body(own_session, url, timeout)
    else:
        body = await _fetch_body(session, url, timeout)

    raw_items = extract_raw_items(feedparser.parse(body))
    logger.info("Feed fetched | key=%s items=%d bytes=%d", target.key, len(raw_items), len(body))
    return FeedResult(url=url, raw_items=raw_items)
