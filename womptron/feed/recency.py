"""Recency filter: keep womps newer than `now - window`, oldest first."""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from loguru import logger

from womptron.core.custom_types import MalformedRecordError, RawRecord, Womp
from .normalizer import normalize_womp


def filter_recent(
    records: Iterable[RawRecord],
    window_seconds: float,
    now: Optional[datetime] = None,
    normalize: Optional[Callable[[RawRecord], Womp]] = None,
    on_malformed: Optional[Callable[[RawRecord, MalformedRecordError], None]] = None,
) -> List[Womp]:
    """
    Normalize `records` and return those created strictly after
    `now - window_seconds`, sorted oldest-first.

    A record that fails normalization is logged and dropped; the rest of the
    batch is still returned.
    """
    normalize = normalize or normalize_womp
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=window_seconds)

    fresh: List[Womp] = []
    for record in records or []:
        try:
            womp = normalize(record)
        except MalformedRecordError as e:
            rid = e.record_id if e.record_id is not None else (record.get("id") if isinstance(record, dict) else None)
            logger.warning(f"[Feed] Skipping malformed womp #{rid}: {e}")
            if on_malformed:
                on_malformed(record, e)
            continue
        if womp.created_at > cutoff:
            fresh.append(womp)

    # feed order is newest-first; publish in order of occurrence
    fresh.sort(key=lambda w: w.created_at)
    return fresh
