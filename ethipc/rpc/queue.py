"""
Request queue: strict FIFO of calls waiting for the IPC channel.

State machine (owned by IpcClient):
- active: at most one dispatched request.
- pending: requests enqueued while another request is active.
- Requests are drained one at a time in arrival order, never reordered.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Iterator

from ethipc.rpc.protocol import RpcRequest


class RequestQueue:
    """Pending requests in arrival order."""

    def __init__(self) -> None:
        self._items: deque[RpcRequest] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[RpcRequest]:
        return iter(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def enqueue(self, request: RpcRequest) -> int:
        """Append to the tail; returns the 1-based queue position."""
        self._items.append(request)
        return len(self._items)

    def dequeue_next(self) -> RpcRequest | None:
        """Pop and return the head, or None."""
        if not self._items:
            return None
        return self._items.popleft()

    def clear(self) -> int:
        """Discard every pending request; returns how many were dropped."""
        dropped = len(self._items)
        self._items.clear()
        return dropped

    def status(self) -> dict[str, Any]:
        head = self._items[0] if self._items else None
        return {
            "queueDepth": len(self._items),
            "headCallId": head.call_id if head else None,
            "headMethod": head.method if head else None,
        }
