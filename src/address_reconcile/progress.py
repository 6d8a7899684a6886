from __future__ import annotations

import queue
import threading
from typing import Iterator, List, Optional, Tuple

Progress = Tuple[int, int]

_CLOSED = object()


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressChannel:
    """Bounded one-way stream of ``(processed, total)`` notifications.

    ``publish`` never blocks: when the buffer is full the oldest notification
    is dropped so a slow consumer always sees the most recent progress.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._closed = False

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    # a consumer emptied the buffer first; retry the put
                    continue

    def publish(self, processed: int, total: int) -> None:
        self._put((processed, total))

    def close(self) -> None:
        self._put(_CLOSED)

    def poll(self) -> List[Progress]:
        """Drain whatever notifications are buffered right now."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                self._closed = True
                return items
            items.append(item)

    def __iter__(self) -> Iterator[Progress]:
        """Block for notifications until the channel is closed."""
        while not self._closed:
            item = self._queue.get()
            if item is _CLOSED:
                self._closed = True
                return
            yield item
