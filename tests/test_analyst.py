from types import SimpleNamespace

import httpx
import pytest
from openai import AsyncOpenAI

from agents.analyst import SYSTEM_PROMPT, AnalysisError, AnalystAgent, build_prompt
from models.target import Target


class _FakeResponses:
    def __init__(self, response):
        self.response = response
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self.response


class _FakeClient:
    def __init__(self, response):
        self.responses = _FakeResponses(response)


def test_prompt_uses_tickers_as_topic() -> None:
    target = Target(key="t", tickers=["AAPL", "NVDA"], topic="ignored", risk_level="high")
    prompt = build_prompt(target, "• Tech rallies")

    assert prompt == "\n".join([
        "Topic: AAPL, NVDA",
        "Risk tolerance: high",
        "Recent market headlines (Yahoo Finance):",
        "• Tech rallies",
        "",
        "Task:",
        "1) Market read in 3 concise bullets.",
        "2) One action (BUY/SELL/HOLD/WATCHLIST) + rationale.",
        "3) Two key risks to monitor.",
        "Limit to 120 words.",
    ])


def test_prompt_topic_fallbacks() -> None:
    assert build_prompt(Target(key="t", topic="stock market"), "").startswith("Topic: stock market\n")
    assert build_prompt(Target(key="t"), "").startswith("Topic: market\nRisk tolerance: medium\n")


def test_prompt_is_deterministic() -> None:
    target = Target(key="t", topic="bonds")
    assert build_prompt(target, "• a\n• b") == build_prompt(target, "• a\n• b")


async def test_analyze_sends_single_request(config) -> None:
    client = _FakeClient(SimpleNamespace(output_text="HOLD. Risks: rates, earnings.", usage=None))
    analyst = AnalystAgent(config, client=client)
    target = Target(key="t", topic="stock market")

    text = await analyst.analyze(target, "• Tech rallies")

    assert text == "HOLD. Risks: rates, earnings."
    assert len(client.responses.calls) == 1
    call = client.responses.calls[0]
    assert call["model"] == config.analyst_model
    assert call["max_output_tokens"] == 250
    assert call["input"] == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(target, "• Tech rallies")},
    ]


@pytest.mark.parametrize("response", [SimpleNamespace(), SimpleNamespace(output_text=None)])
async def test_analyze_missing_text_yields_empty_string(config, response) -> None:
    analyst = AnalystAgent(config, client=_FakeClient(response))
    assert await analyst.analyze(Target(key="t"), "") == ""


async def test_analyze_http_error_raises_analysis_error(config) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(500, json={"error": {"message": "upstream boom"}})

    client = AsyncOpenAI(
        api_key="sk-test",
        base_url="http://ai.test/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    analyst = AnalystAgent(config, client=client)

    with pytest.raises(AnalysisError) as excinfo:
        await analyst.analyze(Target(key="t"), "• Tech rallies")

    assert excinfo.value.status == 500
    assert "upstream boom" in excinfo.value.body
    assert len(requests) == 1
    assert requests[0].url.path == "/v1/responses"
