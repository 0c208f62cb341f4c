"""
Pytest Fixtures for the Womptron Test Suite

Shared raw feed records (shaped like the real womps.json payload), a fixed
clock, and small fakes for the feed and publisher collaborators.
"""
from datetime import datetime, timedelta, timezone

import pytest

from womptron.core.custom_types import PublishResult, Womp

NOW = datetime(2025, 8, 29, 18, 54, 0, tzinfo=timezone.utc)
ADDR = "0x889b4449ade3766937eac2e3801d65f555857c8b"


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def make_record(womp_id: int, age_seconds: float, **fields) -> dict:
    """A raw womp record created `age_seconds` before NOW."""
    record = {
        "id": womp_id,
        "author": ADDR,
        "content": "nice",
        "parcel_id": 1776,
        "image_url": f"https://media.crvox.com/womps/{ADDR}/womp_{womp_id}.jpg",
        "coords": "E@247W,337N,5.5U",
        "created_at": _iso(NOW - timedelta(seconds=age_seconds)),
        "parcel_name": "PIGGYBANK",
        "parcel_address": "26 Boots Crossing",
        "parcel_island": "Origin City",
        "author_name": None,
    }
    record.update(fields)
    return record


def make_womp(womp_id: int, content: str = "hello") -> Womp:
    return Womp(
        id=womp_id,
        content=content,
        location="PIGGYBANK",
        author="AdoraTokyo",
        media_url=f"https://media.crvox.com/womps/{womp_id}.jpg",
        permalink="https://voxels.com/play?coords=E@247W,337N,5.5U",
        created_at=NOW,
    )


class FakeFeed:
    """Feed collaborator returning queued batches (None = failed fetch)."""

    def __init__(self, *batches):
        self.batches = list(batches)
        self.calls = 0
        self.closed = False

    async def fetch(self):
        self.calls += 1
        if not self.batches:
            return None
        return self.batches.pop(0)

    async def aclose(self):
        self.closed = True


class RecordingPublisher:
    """Publisher collaborator that records calls and can fail on given call numbers."""

    def __init__(self, fail_on=(), raise_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)

    async def publish(self, womp):
        self.calls.append(womp)
        n = len(self.calls)
        if n in self.raise_on:
            raise RuntimeError(f"upload exploded on call {n}")
        if n in self.fail_on:
            return PublishResult(womp_id=womp.id, ok=False, error="rejected")
        return PublishResult(womp_id=womp.id, ok=True, post_id=str(1000 + womp.id))


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_records():
    """Feed order: newest first, one stale record at the end."""
    return [
        make_record(80643, 5, content="nice @spammer"),
        make_record(80642, 30, content="Pig Station elements", parcel_name=None,
                    parcel_address="25 Boots Crossing", coords="SW@233W,343N,1U"),
        make_record(80634, 3600, content="<3", author_name="AdoraTokyo"),
    ]


@pytest.fixture
def no_sleep():
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    from loguru import logger

    records = []
    handler_id = logger.add(lambda m: records.append(m.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
