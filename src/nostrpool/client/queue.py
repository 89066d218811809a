"""FIFO buffer between WebSocket reads and protocol dispatch."""

from __future__ import annotations

from collections import deque


class InboundMessageQueue:
    """Ordered queue of raw inbound text frames.

    The reader task appends frames as they arrive; the single drain task
    of a [RelayConnection][nostrpool.client.relay.RelayConnection] pops
    them one at a time, so per-connection processing order always equals
    arrival order.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: deque[str] = deque()

    def enqueue(self, message: str) -> None:
        self._items.append(message)

    def dequeue(self) -> str | None:
        """Pop the oldest frame, or return ``None`` when empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
