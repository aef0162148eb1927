"""Run orchestration for a single briefing target.

Pipeline Flow:
    1. FETCH: Build the feed URL for the target and decode its entries
    2. PROCESS: Normalize, dedupe, rank, select and render the digest
    3. ANALYZE: One analyst call with the digest
    4. SAVE: Merge-upsert the latest brief and create a history entry,
       both under the same capture instant, in one store transaction

A failure in FETCH or ANALYZE propagates to the caller before anything
is written, so a failed run leaves the store untouched. Nothing is
retried here; the invocation adapters in handlers.py decide what a
failure means for the rest of an invocation.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial

from agents.analyst import AnalystAgent
from config import Config
from database import BriefStore
from digest import process_items
from feeds import FeedResult, fetch_feed
from models.brief import Brief, FeedSnapshot
from models.target import REASONS, Target
from observability.logging import clear_context, set_run_context
from observability.tracing import trace_operation

logger = logging.getLogger(__name__)

Fetcher = Callable[[Target], Awaitable[FeedResult]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunResult:
    """Outcome of a successful run.

    Attributes:
        key: Target key the brief was stored under
        item_count: Number of headlines included
        brief: The persisted brief
    """

    key: str
    item_count: int
    brief: Brief


class Pipeline:
    """Fetch, digest, analyze and persist one target at a time.

    Components:
        - fetcher: feeds.fetch_feed bound to the configured timeout
        - AnalystAgent: the single text-generation call
        - BriefStore: latest + history persistence

    All collaborators can be injected, which is how the tests run the
    pipeline without network or disk.

    Example:
        >>> pipeline = Pipeline(config)
        >>> result = await pipeline.run(Target(key="us_market"), "preopen")
        >>> result.item_count
        8
    """

    def __init__(
        self,
        config: Config,
        store: BriefStore | None = None,
        analyst: AnalystAgent | None = None,
        fetcher: Fetcher | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize pipeline components.

        Args:
            config: Application configuration
            store: Brief store (opened at config.db_path if None)
            analyst: Analyst agent (built from config if None)
            fetcher: Coroutine returning a FeedResult for a target
            clock: Source of the capture instant
        """
        self.config = config
        self.store = store if store is not None else BriefStore(config.db_path)
        self.analyst = analyst if analyst is not None else AnalystAgent(config)
        self._fetch = fetcher or partial(fetch_feed, timeout=config.feed_timeout_seconds)
        self._clock = clock

        if config.enable_logfire:
            from observability.tracing import setup_tracing
            setup_tracing(enabled=True, token=config.logfire_token)

    async def run(self, target: Target, reason: str) -> RunResult:
        """Brief one target and persist the result.

        Args:
            target: Briefing target
            reason: One of preopen, intraday, postclose, adhoc

        Returns:
            RunResult with the key and number of included headlines

        Raises:
            ValueError: If reason is not a known run reason
            FetchError: If the feed request fails
            AnalysisError: If the analyst call fails
            StoreError: If the store write fails (rolled back)
        """
        if reason not in REASONS:
            raise ValueError(f"Unknown run reason '{reason}' - must be one of {', '.join(REASONS)}")

        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id, target.key)
        start = time.time()
        logger.info("Run started | key=%s reason=%s", target.key, reason)

        try:
            with trace_operation("brief_run", {"key": target.key, "reason": reason}) as attrs:
                feed = await self._fetch(target)
                processed = process_items(feed.raw_items, target.page_size)
                logger.info(
                    "Digest built | raw=%d selected=%d",
                    len(feed.raw_items), len(processed.items),
                )

                recommendation = await self.analyst.analyze(target, processed.digest_text)

                brief = Brief(
                    target=target,
                    feed=FeedSnapshot(
                        url=feed.url,
                        items=[item.to_feed_item() for item in processed.items],
                    ),
                    brief=processed.digest_text,
                    recommendation=recommendation,
                    reason=reason,
                    updated_at=self._clock(),
                )
                self.store.save_brief(target.key, brief.history_id, brief.to_document())
                attrs["item_count"] = len(processed.items)

            logger.info(
                "Run done | key=%s items=%d history_id=%s duration=%.1fs",
                target.key, len(processed.items), brief.history_id, time.time() - start,
            )
            return RunResult(key=target.key, item_count=len(processed.items), brief=brief)
        finally:
            clear_context()

    def close(self) -> None:
        """Clean up resources."""
        self.store.close()
