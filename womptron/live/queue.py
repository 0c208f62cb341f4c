"""FIFO buffer of womps awaiting publication."""
from __future__ import annotations
from collections import deque
from typing import Deque, Iterable, List, Optional

from womptron.core.custom_types import Womp


class PublishQueue:
    """
    Shared between the Poll Loop (enqueue_all) and the Drain Loop
    (dequeue_one). Backed by a deque so append/popleft are single atomic
    steps even when the two loops end up on different threads.
    """

    def __init__(self) -> None:
        self._items: Deque[Womp] = deque()

    def enqueue_all(self, womps: Iterable[Womp]) -> int:
        """Append `womps` to the tail in the given order; returns the new length."""
        for womp in womps:
            self._items.append(womp)
        return len(self._items)

    def dequeue_one(self) -> Optional[Womp]:
        """Remove and return the head womp, or None when empty."""
        try:
            return self._items.popleft()
        except IndexError:
            return None

    def snapshot(self) -> List[Womp]:
        return list(self._items)

    def clear(self) -> int:
        n = len(self._items)
        self._items.clear()
        return n

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
