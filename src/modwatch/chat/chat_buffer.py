"""
Bounded FIFO store of recent chat messages.

The buffer is the only structure mutated outside of a monitor cycle. Appends
and snapshots are guarded by a lock so a transport thread can keep appending
while a cycle iterates over its own copy.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterable, List, Tuple

from modwatch.datatypes.chat_datatypes import ChatMessage

DEFAULT_CAPACITY = 100


class ChatBuffer:
    """Keeps the newest ``capacity`` messages in arrival order.

    Attributes:
        capacity: Maximum number of retained messages.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._messages: deque[ChatMessage] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._total_appended = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def append(self, message: ChatMessage) -> None:
        """Append ``message``, evicting the oldest one when over capacity."""
        with self._lock:
            self._messages.append(message)
            self._total_appended += 1

    def extend(self, messages: Iterable[ChatMessage]) -> None:
        """Append each message in order."""
        with self._lock:
            for message in messages:
                self._messages.append(message)
                self._total_appended += 1

    def snapshot(self) -> Tuple[ChatMessage, ...]:
        """Return an immutable, point-in-time copy in insertion order."""
        with self._lock:
            return tuple(self._messages)

    def newest(self) -> ChatMessage | None:
        with self._lock:
            return self._messages[-1] if self._messages else None

    @property
    def total_appended(self) -> int:
        """Number of messages ever appended, evicted ones included."""
        return self._total_appended

    def recent_log(self, n: int = 20) -> List[str]:
        """Return the last ``n`` messages formatted as ``username: content``."""
        if n <= 0:
            return []
        messages = self.snapshot()[-n:]
        return [message.as_log_line() for message in messages]
