"""Feed subsystem.

Provides:
 - FeedClient: fetches the raw womp feed over HTTP.
 - normalize_womp: pure raw record -> Womp conversion.
 - filter_recent: recency window + oldest-first ordering over a batch.
"""

from .client import FeedClient
from .normalizer import normalize_womp
from .recency import filter_recent

__all__ = ["FeedClient", "normalize_womp", "filter_recent"]
