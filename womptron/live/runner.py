"""High level runner coordinating feed -> poll loop -> queue -> drain -> publisher."""
from __future__ import annotations
import asyncio
import functools
import signal
from typing import List, Optional

from loguru import logger

from womptron.core.config import Settings
from womptron.feed.client import FeedClient
from womptron.feed.normalizer import normalize_womp
from womptron.transport.twitter import TwitterPublisher
from .drain import Drainer, Publisher
from .metrics import Metrics
from .poller import Poller
from .queue import PublishQueue


class WomptronRunner:
    def __init__(self, settings: Settings, feed: Optional[FeedClient] = None,
                 publisher: Optional[Publisher] = None):
        self.settings = settings
        self.metrics = Metrics()
        self.queue = PublishQueue()
        self.feed = feed or FeedClient(
            url=settings.feed.url,
            timeout=settings.feed.timeout_seconds,
            debug=settings.feed.debug,
            cache_bust=settings.feed.cache_bust,
        )
        self.publisher = publisher or TwitterPublisher(settings.publisher, timeout=settings.feed.timeout_seconds)
        self.drainer = Drainer(self.queue, self.publisher, delay_ms=settings.drain.delay_ms, metrics=self.metrics)
        norm = settings.normalize
        self.poller = Poller(
            self.feed,
            self.queue,
            self.drainer,
            interval_seconds=settings.poll.interval_seconds,
            window_seconds=settings.poll.recency_window_seconds,
            normalize=functools.partial(
                normalize_womp,
                max_length=norm.max_content_length,
                ellipsis=norm.ellipsis,
                permalink_template=norm.permalink_template,
            ),
            banned_authors=norm.banned_authors,
            metrics=self.metrics,
        )
        self._stop = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None
        self._signals: List[signal.Signals] = []

    def request_stop(self, signame: str = "") -> None:
        if signame:
            logger.warning(f"[Runner] Caught {signame}. Stopping...")
        self._stop.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig.name)
            except (NotImplementedError, RuntimeError):  # pragma: no cover - platform dependent
                continue
            self._signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals:
            loop.remove_signal_handler(self._signals.pop())

    async def start(self) -> None:
        logger.info(
            f"[Runner] Starting: feed={self.settings.feed.url} interval={self.settings.poll.interval_seconds}s "
            f"window={self.settings.poll.recency_window_seconds}s delay={self.settings.drain.delay_ms}ms "
            f"dry_run={self.settings.publisher.dry_run}"
        )
        self._poll_task = asyncio.create_task(self.poller.run_forever(self._stop), name="womptron-poll")

    async def stop(self) -> None:
        """Cancel the poll timer, give the drain its grace period, release clients."""
        self._stop.set()
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        grace = self.settings.drain.shutdown_grace_seconds
        if not await self.drainer.shutdown(grace):
            logger.warning(f"[Runner] In-flight drain abandoned after {grace}s grace period")
        try:
            await self.feed.aclose()
        finally:
            try:
                aclose = getattr(self.publisher, "aclose", None)
                if aclose is not None:
                    await aclose()
            finally:
                logger.info(f"[Runner] Stopped. metrics={self.metrics.snapshot()}")

    async def run_until_stopped(self) -> None:
        """Poll until SIGINT/SIGTERM, then shut down."""
        self._install_signal_handlers()
        try:
            await self.start()
            await self._stop.wait()
        finally:
            try:
                await self.stop()
            finally:
                self._remove_signal_handlers()

    async def run_once(self) -> int:
        """One poll tick, wait for the resulting drain, shut down."""
        try:
            womps = await self.poller.tick()
            await self.drainer.wait_idle()
            return len(womps)
        finally:
            await self.stop()
