"""AI agents for the market briefing pipeline.

AnalystAgent:
    Builds the fixed briefing prompt from a target and its headline
    digest, makes a single call to the text-generation service, and
    returns the investment read as plain text.

Example:
    >>> from agents import AnalystAgent
    >>> analyst = AnalystAgent(config)
    >>> text = await analyst.analyze(target, digest_text)
"""

from agents.analyst import AnalystAgent, AnalysisError, build_prompt

__all__ = [
    "AnalystAgent",
    "AnalysisError",
    "build_prompt",
]
