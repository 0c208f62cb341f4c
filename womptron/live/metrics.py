"""Minimal counters and a publish-latency histogram for the bot.

Kept small and import-safe; the snapshot is logged on shutdown.
"""
from __future__ import annotations
import time
import statistics
from collections import deque
from typing import Dict, Any


class Histogram:
    def __init__(self, max_samples: int = 1024):
        self._buf = deque(maxlen=max_samples)

    def observe(self, value: float) -> None:
        self._buf.append(float(value))

    def snapshot(self) -> Dict[str, float]:
        if not self._buf:
            return {"count": 0}
        data = sorted(self._buf)
        n = len(data)

        def pct(p: float) -> float:
            idx = int(p * (n - 1))
            return float(data[idx])

        return {
            "count": n,
            "p50": pct(0.5),
            "p90": pct(0.9),
            "min": float(data[0]),
            "max": float(data[-1]),
            "mean": statistics.fmean(data),
        }


class Metrics:
    """Runtime counters for the poll and drain loops."""

    def __init__(self) -> None:
        self.started_monotonic = time.perf_counter()
        self.publish_latency_ms = Histogram()
        self.counters: Dict[str, int] = {
            "polls": 0,
            "fetch_failures": 0,
            "womps_found": 0,
            "womps_malformed": 0,
            "womps_banned": 0,
            "drains": 0,
            "published": 0,
            "publish_failures": 0,
        }

    def inc(self, name: str, value: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + value

    def snapshot(self) -> Dict[str, Any]:
        return {
            "uptime_sec": round(time.perf_counter() - self.started_monotonic, 1),
            "counters": dict(self.counters),
            "publish_latency_ms": self.publish_latency_ms.snapshot(),
        }
