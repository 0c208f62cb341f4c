"""Poll Loop: fetch the feed on a fixed period and hand new womps to the drain."""
from __future__ import annotations
import asyncio
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from loguru import logger

from womptron.core.custom_types import RawRecord, Womp
from womptron.feed.client import FeedClient
from womptron.feed.normalizer import normalize_womp
from womptron.feed.recency import filter_recent
from .drain import Drainer
from .metrics import Metrics
from .queue import PublishQueue


class Poller:
    def __init__(
        self,
        feed: FeedClient,
        queue: PublishQueue,
        drainer: Drainer,
        interval_seconds: float = 60.0,
        window_seconds: float = 60.0,
        normalize: Optional[Callable[[RawRecord], Womp]] = None,
        banned_authors: Iterable[str] = (),
        metrics: Optional[Metrics] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.feed = feed
        self.queue = queue
        self.drainer = drainer
        self.interval_seconds = interval_seconds
        self.window_seconds = window_seconds
        self.normalize = normalize or normalize_womp
        self.banned_authors = set(banned_authors or ())
        self.metrics = metrics or drainer.metrics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _on_malformed(self, record, error) -> None:
        self.metrics.inc("womps_malformed")

    def _drop_banned(self, womps: List[Womp]) -> List[Womp]:
        if not self.banned_authors:
            return womps
        kept = []
        for w in womps:
            if w.author in self.banned_authors:
                self.metrics.inc("womps_banned")
                logger.info(f"[Poller] Skipping womp #{w.id}: author banned")
                continue
            kept.append(w)
        return kept

    async def tick(self) -> List[Womp]:
        """One poll: fetch, normalize + filter, enqueue, trigger a drain.

        Returns the womps enqueued by this tick. Never waits on the drain.
        """
        self.metrics.inc("polls")
        logger.debug("[Poller] Polling feed")
        batch = await self.feed.fetch()
        if batch is None:
            self.metrics.inc("fetch_failures")
            logger.info("[Womptron] Found 0 new womps (fetch skipped)")
            return []

        womps = filter_recent(
            batch,
            self.window_seconds,
            now=self._clock(),
            normalize=self.normalize,
            on_malformed=self._on_malformed,
        )
        womps = self._drop_banned(womps)
        logger.info(f"[Womptron] Found {len(womps)} new womps")
        if not womps:
            return []

        self.metrics.inc("womps_found", len(womps))
        size = self.queue.enqueue_all(womps)
        logger.info(f"[Womptron] Tweet queue: {size} womps")
        self.drainer.trigger()
        return womps

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"[Poller] Poll tick failed: {e!r}")

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        """Tick immediately, then on every interval boundary until `stop` is set.

        Boundaries missed because a tick overran are skipped.
        """
        stop = stop or asyncio.Event()
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        logger.info(f"[Poller] Polling every {self.interval_seconds}s (window {self.window_seconds}s)")
        while not stop.is_set():
            await self._safe_tick()
            next_at += self.interval_seconds
            now = loop.time()
            if next_at <= now:
                missed = math.floor((now - next_at) / self.interval_seconds) + 1
                logger.warning(f"[Poller] Tick overran; skipping {missed} interval(s)")
                next_at += missed * self.interval_seconds
            try:
                await asyncio.wait_for(stop.wait(), timeout=next_at - now)
            except asyncio.TimeoutError:
                pass
        logger.info("[Poller] Poll loop stopped")
