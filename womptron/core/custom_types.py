"""
Custom Type Definitions
-----------------------

Shared value types passed between the feed, the scheduler and the publisher.

- Womp: one normalized feed record, immutable once built. This is the only
  object that travels through the Publish Queue.
- PublishResult: what the Publisher reports back for one womp.
- DrainState: the two states of the Drain Loop.
- MalformedRecordError: raised when a raw feed record cannot be normalized.
"""
from __future__ import annotations
from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

# A raw feed record as decoded from JSON (feed-specific field names).
RawRecord = Dict[str, Any]


class MalformedRecordError(ValueError):
    """A raw feed record is missing a required field or a field failed to parse."""

    def __init__(self, message: str, record_id: Any = None):
        super().__init__(message)
        self.record_id = record_id


class DrainState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass(frozen=True)
class Womp:
    """
    Represents one announced user action ("womp").
    """

    id: int
    content: str
    location: str
    author: str
    media_url: str
    permalink: str
    created_at: datetime


@dataclass(frozen=True)
class PublishResult:
    womp_id: int
    ok: bool
    post_id: Optional[str] = None
    media_id: Optional[str] = None
    error: Optional[str] = None
    dry_run: bool = False
