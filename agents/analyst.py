"""Analyst agent producing a short investment read from a headline digest.

The analyst is a single, fixed prompt sent once per run. There is no
tool use, no structured output and no retry: the service's text answer
is stored as-is.

Design Philosophy:
    - Deterministic input: the prompt depends only on the target and digest
    - One call: SDK retries are disabled so failures surface immediately
    - Lenient output: a successful response with no text yields ''

Error Handling:
    Any non-success HTTP status from the service raises AnalysisError
    carrying the status code and the response body.
"""

import logging

from openai import APIStatusError, AsyncOpenAI

from config import Config
from models.target import Target

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a pragmatic, risk-aware investment analyst. Be concise."

TASK_LINES = [
    "Task:",
    "1) Market read in 3 concise bullets.",
    "2) One action (BUY/SELL/HOLD/WATCHLIST) + rationale.",
    "3) Two key risks to monitor.",
    "Limit to 120 words.",
]


class AnalysisError(Exception):
    """Text-generation service returned a non-success HTTP status."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"AI error {status}: {body}")


def build_prompt(target: Target, digest_text: str) -> str:
    """Build the user prompt for a target and its digest.

    Args:
        target: Briefing target (supplies topic label and risk tolerance)
        digest_text: Newline-joined digest lines

    Returns:
        Prompt text, identical for identical inputs
    """
    lines = [
        f"Topic: {target.label}",
        f"Risk tolerance: {target.risk_level or 'medium'}",
        "Recent market headlines (Yahoo Finance):",
        digest_text,
        "",
        *TASK_LINES,
    ]
    return "\n".join(lines)


def _create_client(config: Config) -> AsyncOpenAI:
    """Create the OpenAI client with retries disabled.

    OPENAI_BASE_URL points the client at any OpenAI-compatible server.
    """
    if config.openai_base_url:
        logger.info("Using alternate OpenAI endpoint | base_url=%s", config.openai_base_url)
    return AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url or None,
        max_retries=0,
    )


class AnalystAgent:
    """Turns a headline digest into a short buy/sell/hold read.

    Example:
        >>> analyst = AnalystAgent(config)
        >>> text = await analyst.analyze(target, "• Tech rallies")
        >>> text.startswith("-")
        True
    """

    def __init__(self, config: Config, client: AsyncOpenAI | None = None):
        """Initialize the analyst.

        Args:
            config: Application configuration with model settings
            client: Pre-built OpenAI client (created from config if None)
        """
        self.config = config
        self._client = client or _create_client(config)

    async def analyze(self, target: Target, digest_text: str) -> str:
        """Request the investment read for one target.

        Args:
            target: Briefing target
            digest_text: Rendered digest for that target

        Returns:
            The service's text output, or '' if the response carried none

        Raises:
            AnalysisError: If the service responds with a non-success status
        """
        prompt = build_prompt(target, digest_text)
        try:
            response = await self._client.responses.create(
                model=self.config.analyst_model,
                input=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_output_tokens=self.config.analyst_max_output_tokens,
            )
        except APIStatusError as e:
            logger.error("Analysis failed | key=%s status=%d", target.key, e.status_code)
            raise AnalysisError(e.status_code, e.response.text) from e

        text = getattr(response, "output_text", None) or ""
        usage = getattr(response, "usage", None)
        logger.info(
            "Analysis complete | key=%s chars=%d tokens=%d/%d",
            target.key,
            len(text),
            getattr(usage, "input_tokens", 0) or 0,
            getattr(usage, "output_tokens", 0) or 0,
        )
        return text
