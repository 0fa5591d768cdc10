from __future__ import annotations

import queue
import threading
from collections import deque

from addressiq.schemas.property import ProgressEvent

DEFAULT_CAPACITY = 64
MIN_CAPACITY = 50


class ChannelClosed(Exception):
    """Raised by ``ProgressChannel.get`` once the channel is closed and drained."""


class ProgressChannel:
    """Bounded single-consumer event queue whose producers never block.

    When full, the oldest non-terminal event is dropped to make room. A
    terminal event with nothing non-terminal left to evict replaces the
    oldest queued event instead.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = max(capacity, MIN_CAPACITY)
        self._events: deque[ProgressEvent] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self.dropped = 0

    def publish(self, event: ProgressEvent) -> None:
        with self._cond:
            if self._closed:
                return
            if len(self._events) >= self.capacity:
                self._make_room(event)
            else:
                self._events.append(event)
            self._cond.notify()

    def _make_room(self, event: ProgressEvent) -> None:
        for index, queued in enumerate(self._events):
            if not queued.terminal:
                del self._events[index]
                self._events.append(event)
                self.dropped += 1
                return
        if event.terminal:
            self._events.popleft()
            self._events.append(event)
        self.dropped += 1

    def get(self, timeout: float | None = None) -> ProgressEvent:
        with self._cond:
            if not self._cond.wait_for(lambda: self._events or self._closed, timeout=timeout):
                raise queue.Empty
            if self._events:
                return self._events.popleft()
            raise ChannelClosed

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._events)
