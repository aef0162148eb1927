import feedparser
import pytest

from feeds import (
    BROAD_MARKET_SYMBOLS,
    FetchError,
    extract_raw_items,
    feed_url_for,
    fetch_feed,
)
from models.target import Target
from tests.fakes import ATOM_FEED, RSS_FEED, FakeResponse, FakeSession


def test_url_for_tickers_is_comma_joined_and_encoded() -> None:
    url = feed_url_for(Target(key="t", tickers=["AAPL", "BRK.B", "^GSPC"]))
    assert url == (
        "https://feeds.finance.yahoo.com/rss/2.0/headline"
        "?s=AAPL%2CBRK.B%2C%5EGSPC&region=US&lang=en-US"
    )


@pytest.mark.parametrize("target", [
    Target(key="t", topic="stock market"),
    Target(key="t", tickers=[]),
    Target(key="t"),
])
def test_url_without_tickers_uses_broad_market(target: Target) -> None:
    url = feed_url_for(target)
    assert f"s={BROAD_MARKET_SYMBOLS}&" in url


def test_url_is_deterministic() -> None:
    target = Target(key="t", tickers=["NVDA", "AMD"])
    assert feed_url_for(target) == feed_url_for(target.model_copy())


def test_extract_rss_items() -> None:
    items = extract_raw_items(feedparser.parse(RSS_FEED))

    assert [item["title"] for item in items] == ["Fed holds rates", "Tech rallies"]
    assert items[0]["link"] == "https://example.com/fed"
    assert items[0]["pubDate"] == "Tue, 14 Oct 2025 12:00:00 +0000"
    assert "No change" in items[0]["description"]
    assert "description" not in items[1]


def test_extract_atom_entries() -> None:
    items = extract_raw_items(feedparser.parse(ATOM_FEED))

    assert len(items) == 1
    assert items[0]["title"] == "Oil slips on supply data"
    assert items[0]["link"] == "https://example.com/oil"
    assert items[0]["pubDate"] == "2025-10-14T11:00:00Z"
    assert items[0]["description"] == "Crude inventories rose."


def test_extract_links_only_entry_gives_href_mapping() -> None:
    parsed = {
        "version": "atom10",
        "entries": [{"title": "X", "links": [{"rel": "enclosure", "href": "http://e"},
                                             {"rel": "alternate", "href": "http://x"}]}],
    }
    assert extract_raw_items(parsed)[0]["link"] == {"href": "http://x"}


@pytest.mark.parametrize("body", [
    b"<html><body><p>Not a feed</p></body></html>",
    b"not xml at all",
    b"",
])
def test_extract_without_items_or_entries_is_empty(body: bytes) -> None:
    assert extract_raw_items(feedparser.parse(body)) == []


def test_extract_is_total_on_sparse_entries() -> None:
    parsed = {"version": "", "entries": [{}, {"summary": "only text"}]}
    items = extract_raw_items(parsed)
    assert items == [{}, {"description": "only text"}]


async def test_fetch_feed_parses_body() -> None:
    session = FakeSession(FakeResponse(200, RSS_FEED))
    target = Target(key="tech", tickers=["AAPL"])

    result = await fetch_feed(target, session=session)

    assert result.url == feed_url_for(target)
    assert session.requested == [result.url]
    assert len(result.raw_items) == 2


@pytest.mark.parametrize("status", [404, 429, 503])
async def test_fetch_feed_non_success_raises(status: int) -> None:
    session = FakeSession(FakeResponse(status, b"error page"))

    with pytest.raises(FetchError) as excinfo:
        await fetch_feed(Target(key="us_market"), session=session)

    assert excinfo.value.status == status
    assert len(session.requested) == 1
