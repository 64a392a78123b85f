from __future__ import annotations

import itertools
import threading
from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar


T = TypeVar("T")


class RollingBuffer(Generic[T]):
    """Thread-safe bounded buffer that evicts the oldest item on overflow.

    Chronological buffers append at the tail and ``read`` returns the last N
    items oldest-first. Newest-first buffers insert at the head and ``read``
    returns the first N items, newest-first. Reads copy under the lock, so a
    reader never observes a half-applied append.
    """

    def __init__(self, capacity: int, newest_first: bool = False) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._newest_first = newest_first
        self._buffer: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.RLock()

    def append(self, item: T) -> None:
        with self._lock:
            if self._newest_first:
                self._buffer.appendleft(item)
            else:
                self._buffer.append(item)

    def read(self, limit: Optional[int] = None) -> List[T]:
        with self._lock:
            if limit is None:
                return list(self._buffer)
            if limit <= 0:
                return []
            if self._newest_first:
                return list(itertools.islice(self._buffer, limit))
            start = max(0, len(self._buffer) - limit)
            return list(itertools.islice(self._buffer, start, None))

    def latest(self) -> Optional[T]:
        with self._lock:
            if not self._buffer:
                return None
            return self._buffer[0] if self._newest_first else self._buffer[-1]

    def size(self) -> int:
        with self._lock:
            return len(self._buffer)
