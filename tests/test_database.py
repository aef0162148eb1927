import pytest

from database import BriefStore, StoreError, merge_documents


def _payload(reason: str = "preopen", **overrides) -> dict:
    payload = {
        "target": {"key": "us_market", "topic": "stock market", "riskLevel": "medium", "pageSize": 8},
        "feed": {"source": "Yahoo Finance RSS", "url": "https://x", "items": [{"title": "A"}]},
        "brief": "• A",
        "recommendation": "HOLD",
        "reason": reason,
        "updatedAt": "2025-10-14T13:30:00Z",
    }
    payload.update(overrides)
    return payload


def test_merge_documents_merges_nested_and_replaces_lists() -> None:
    existing = {"target": {"key": "k", "topic": "old"}, "feed": {"items": [1, 2]}, "extra": 1}
    update = {"target": {"key": "k", "tickers": ["A"]}, "feed": {"items": [3]}}

    merged = merge_documents(existing, update)

    assert merged == {
        "target": {"key": "k", "topic": "old", "tickers": ["A"]},
        "feed": {"items": [3]},
        "extra": 1,
    }
    assert existing["target"] == {"key": "k", "topic": "old"}


def test_upsert_latest_creates_then_merges(store: BriefStore) -> None:
    store.upsert_latest("us_market", _payload("preopen"))
    second = _payload("intraday", target={"key": "us_market", "tickers": ["SPY"]})
    store.upsert_latest("us_market", second)

    latest = store.latest("us_market")
    assert latest["reason"] == "intraday"
    assert latest["target"]["tickers"] == ["SPY"]
    assert latest["target"]["topic"] == "stock market"
    assert store.stats() == {"latest": 1, "history": 0}


def test_latest_missing_key(store: BriefStore) -> None:
    assert store.latest("nope") is None


def test_history_is_create_only(store: BriefStore) -> None:
    store.append_history("us_market", "1000", _payload("preopen"))

    with pytest.raises(StoreError):
        store.append_history("us_market", "1000", _payload("postclose"))

    entries = store.history("us_market")
    assert len(entries) == 1
    assert entries[0]["reason"] == "preopen"
    assert entries[0]["historyId"] == "1000"


def test_history_newest_first_and_limited(store: BriefStore) -> None:
    for history_id in ("999", "1000", "20000"):
        store.append_history("k", history_id, _payload())
    store.append_history("other", "5", _payload())

    assert [e["historyId"] for e in store.history("k")] == ["20000", "1000", "999"]
    assert [e["historyId"] for e in store.history("k", limit=1)] == ["20000"]


def test_save_brief_writes_latest_and_history(store: BriefStore) -> None:
    store.save_brief("us_market", "1000", _payload())

    assert store.latest("us_market")["brief"] == "• A"
    assert len(store.history("us_market")) == 1
    assert store.keys() == ["us_market"]


def test_save_brief_rolls_back_latest_on_history_conflict(store: BriefStore) -> None:
    store.save_brief("us_market", "1000", _payload("preopen"))

    with pytest.raises(StoreError):
        store.save_brief("us_market", "1000", _payload("intraday"))

    assert store.latest("us_market")["reason"] == "preopen"
    assert store.stats() == {"latest": 1, "history": 1}


def test_store_persists_across_connections(config) -> None:
    with BriefStore(config.db_path) as store:
        store.save_brief("k", "1", _payload())
    with BriefStore(config.db_path) as store:
        assert store.latest("k")["recommendation"] == "HOLD"
