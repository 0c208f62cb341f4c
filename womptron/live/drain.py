"""Drain Loop: publish queued womps one at a time, never two drains at once."""
from __future__ import annotations
import asyncio
import threading
import time
from typing import Awaitable, Callable, Optional, Protocol

from loguru import logger

from womptron.core.custom_types import DrainState, PublishResult, Womp
from .metrics import Metrics
from .queue import PublishQueue


class Publisher(Protocol):
    async def publish(self, womp: Womp) -> PublishResult: ...


class DrainGuard:
    """Atomic Idle/Draining flag.

    `try_acquire` is a single check-and-set step (a non-blocking lock
    acquire), so it holds even if triggers arrive from several threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()


class Drainer:
    def __init__(
        self,
        queue: PublishQueue,
        publisher: Publisher,
        delay_ms: int = 2000,
        metrics: Optional[Metrics] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.queue = queue
        self.publisher = publisher
        self.delay_seconds = delay_ms / 1000.0
        self.metrics = metrics or Metrics()
        self._sleep = sleep
        self._guard = DrainGuard()
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def state(self) -> DrainState:
        return DrainState.DRAINING if self._guard.held else DrainState.IDLE

    @property
    def current_task(self) -> Optional[asyncio.Task]:
        return self._task

    def trigger(self) -> Optional[asyncio.Task]:
        """Start a drain unless one is already running.

        Returns the spawned task, or None when the trigger was a no-op. Must
        be called from inside the running event loop.
        """
        if self._closed:
            return None
        if not self._guard.try_acquire():
            logger.debug("[Drain] Drain already in progress; trigger ignored")
            return None
        try:
            task = asyncio.get_running_loop().create_task(self._run(), name="womptron-drain")
        except BaseException:
            self._guard.release()
            raise
        self._task = task
        # the guard is released here rather than inside _run so that a task
        # cancelled before its first step still returns to Idle
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._guard.release()
        if task.cancelled():
            logger.warning(f"[Drain] Drain cancelled with {len(self.queue)} womp(s) still queued")
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[Drain] Drain task died: {exc!r}")
        # an enqueue may have landed between the final empty dequeue and the release
        if self.queue and not self._closed:
            self.trigger()

    async def _run(self) -> int:
        self.metrics.inc("drains")
        published = 0
        while True:
            womp = self.queue.dequeue_one()
            if womp is None:
                break
            await self._publish_one(womp)
            published += 1
            await self._sleep(self.delay_seconds)
        logger.debug(f"[Drain] Queue empty after {published} attempt(s)")
        return published

    async def _publish_one(self, womp: Womp) -> Optional[PublishResult]:
        started = time.perf_counter()
        try:
            result = await self.publisher.publish(womp)
        except Exception as e:
            # dropped, not requeued
            self.metrics.inc("publish_failures")
            logger.exception(f"[Drain] Error publishing womp #{womp.id}: {e!r}")
            return None
        self.metrics.publish_latency_ms.observe((time.perf_counter() - started) * 1000.0)
        if result is not None and not result.ok:
            self.metrics.inc("publish_failures")
        else:
            self.metrics.inc("published")
        return result

    async def wait_idle(self) -> None:
        """Wait until no drain is running (following any re-triggered drains)."""
        while self._task is not None and not self._task.done():
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
            except Exception:
                pass  # logged by _on_done
            # let _on_done run and possibly re-trigger
            await asyncio.sleep(0)

    async def shutdown(self, grace_seconds: float) -> bool:
        """Stop accepting triggers and give an in-flight drain `grace_seconds` to finish.

        Returns True when the drain finished on its own, False when it had to
        be cancelled; womps left in the queue are dropped either way.
        """
        self._closed = True
        finished = True
        task = self._task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=grace_seconds)
            except asyncio.TimeoutError:
                finished = False
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            except Exception:
                pass  # logged by _on_done
        dropped = self.queue.clear()
        if dropped:
            logger.warning(f"[Drain] Abandoning {dropped} queued womp(s) on shutdown")
        return finished
