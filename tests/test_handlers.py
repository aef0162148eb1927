import pytest

from agents.analyst import AnalysisError
from feeds import FetchError
from handlers import OnDemandError, handle_adhoc, parse_adhoc_request, run_scheduled
from models.target import Target
from pipeline import Pipeline
from tests.fakes import CAPTURED_AT, FakeAnalyst, FakeFetcher

TARGETS = [
    Target(key="us_market", topic="stock market"),
    Target(key="tech_megacaps", tickers=["AAPL", "MSFT"]),
    Target(key="energy", tickers=["XOM"]),
]


def _pipeline(config, store, fetcher, analyst=None) -> Pipeline:
    return Pipeline(
        config, store=store, analyst=analyst or FakeAnalyst(), fetcher=fetcher, clock=lambda: CAPTURED_AT,
    )


async def test_scheduled_run_briefs_targets_in_order(config, store, sample_raw_items) -> None:
    fetcher = FakeFetcher(sample_raw_items)

    report = await run_scheduled(_pipeline(config, store, fetcher), TARGETS, "preopen")

    assert fetcher.calls == ["us_market", "tech_megacaps", "energy"]
    assert [o.key for o in report.outcomes] == fetcher.calls
    assert all(o.ok and o.item_count == 2 for o in report.outcomes)
    assert report.failures == []
    assert store.keys() == ["energy", "tech_megacaps", "us_market"]


async def test_scheduled_run_isolates_failing_target(config, store, sample_raw_items) -> None:
    fetcher = FakeFetcher(sample_raw_items, errors={"us_market": FetchError(503)})

    report = await run_scheduled(_pipeline(config, store, fetcher), TARGETS, "intraday")

    assert fetcher.calls == ["us_market", "tech_megacaps", "energy"]
    assert [o.key for o in report.failures] == ["us_market"]
    assert "FetchError" in report.failures[0].error
    assert report.succeeded == 2
    assert store.latest("us_market") is None
    assert store.latest("energy")["reason"] == "intraday"
    assert report.to_dict()["failed"] == 1


async def test_scheduled_run_all_fail(config, store, sample_raw_items) -> None:
    analyst = FakeAnalyst(error=AnalysisError(500, "down"))

    report = await run_scheduled(_pipeline(config, store, FakeFetcher(sample_raw_items), analyst), TARGETS, "postclose")

    assert len(report.failures) == 3
    assert store.stats() == {"latest": 0, "history": 0}


async def test_adhoc_requires_caller(config, store) -> None:
    fetcher = FakeFetcher([])

    with pytest.raises(OnDemandError) as excinfo:
        await handle_adhoc(_pipeline(config, store, fetcher), {"topic": "gold"}, caller=None)

    assert excinfo.value.code == "unauthenticated"
    assert fetcher.calls == []


@pytest.mark.parametrize("payload", [
    {"topic": "x"},
    {"topic": "x" * 65},
    {"tickers": [f"T{i}" for i in range(11)]},
    {"riskLevel": "extreme"},
    {"pageSize": 2},
    {"pageSize": 16},
    {"pageSize": "5"},
    {"pageSize": 4.5},
    "not an object",
])
async def test_adhoc_rejects_invalid_payload(config, store, payload) -> None:
    fetcher = FakeFetcher([])

    with pytest.raises(OnDemandError) as excinfo:
        await handle_adhoc(_pipeline(config, store, fetcher), payload, caller="user-1")

    assert excinfo.value.code == "invalid-argument"
    assert fetcher.calls == []


def test_adhoc_request_uppercases_and_defaults() -> None:
    request = parse_adhoc_request({"tickers": ["aapl", "Nvda"], "unknown": True})
    target = request.to_target()

    assert target.key == "adhoc"
    assert target.tickers == ["AAPL", "NVDA"]
    assert target.risk_level == "medium"
    assert target.page_size == 8


def test_adhoc_empty_payload_is_valid() -> None:
    assert parse_adhoc_request(None).to_target() == Target(key="adhoc")


async def test_adhoc_returns_brief_and_persists_under_adhoc(config, store, sample_raw_items) -> None:
    analyst = FakeAnalyst("SELL into strength.")
    pipeline = _pipeline(config, store, FakeFetcher(sample_raw_items), analyst)

    response = await handle_adhoc(
        pipeline, {"tickers": ["aapl"], "riskLevel": "low", "pageSize": 3}, caller="user-1",
    )

    assert response["ok"] is True
    assert response["brief"] == "• Tech rallies\n• Fed holds rates — No change"
    assert response["recommendation"] == "SELL into strength."
    assert response["feed"]["source"] == "Yahoo Finance RSS"
    assert [i["title"] for i in response["feed"]["items"]] == ["Tech rallies", "Fed holds rates"]

    target, _ = analyst.calls[0]
    assert target.tickers == ["AAPL"]
    assert target.risk_level == "low"
    assert store.latest("adhoc")["reason"] == "adhoc"
    assert len(store.history("adhoc")) == 1


async def test_adhoc_upstream_failure_is_internal(config, store) -> None:
    fetcher = FakeFetcher([], errors={"adhoc": FetchError(502)})

    with pytest.raises(OnDemandError) as excinfo:
        await handle_adhoc(_pipeline(config, store, fetcher), {"topic": "gold"}, caller="user-1")

    assert excinfo.value.code == "internal"
    assert isinstance(excinfo.value.__cause__, FetchError)
    assert store.latest("adhoc") is None
