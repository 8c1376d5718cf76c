"""Observer registration for client events."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable

from loguru import logger


class ClientEvent(str, Enum):
    """Notifications emitted by IpcClient; payloads are plain values."""

    CONNECTION_STATE_CHANGED = "connection_state_changed"
    BUSY_CHANGED = "busy_changed"
    ERROR = "error"
    CONNECT_DONE = "connect_done"
    ACCOUNTS_READY = "accounts_ready"
    BALANCE_UPDATED = "balance_updated"
    TRANSACTION_COUNT_UPDATED = "transaction_count_updated"
    NEW_ACCOUNT_DONE = "new_account_done"
    DELETE_ACCOUNT_DONE = "delete_account_done"
    UNLOCK_ACCOUNT_DONE = "unlock_account_done"
    SEND_TRANSACTION_DONE = "send_transaction_done"
    BLOCK_NUMBER_DONE = "block_number_done"
    PEER_COUNT_CHANGED = "peer_count_changed"
    GAS_PRICE_DONE = "gas_price_done"
    PENDING_FILTER_INSTALLED = "pending_filter_installed"


Callback = Callable[..., Any]


class EventEmitter:
    """Synchronous fan-out to registered callbacks, plus awaitable waiters."""

    def __init__(self) -> None:
        self._callbacks: dict[ClientEvent, list[Callback]] = {}
        self._waiters: dict[ClientEvent, list[asyncio.Future[Any]]] = {}

    def on(self, event: ClientEvent, callback: Callback) -> Callback:
        self._callbacks.setdefault(ClientEvent(event), []).append(callback)
        return callback

    def off(self, event: ClientEvent, callback: Callback) -> None:
        callbacks = self._callbacks.get(ClientEvent(event), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event: ClientEvent) -> int:
        return len(self._callbacks.get(ClientEvent(event), []))

    def emit(self, event: ClientEvent, *args: Any) -> None:
        event = ClientEvent(event)
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(*args)
            except Exception:
                logger.exception("Observer for {} raised", event.value)
        waiters = self._waiters.pop(event, [])
        value = args[0] if len(args) == 1 else args
        for fut in waiters:
            if not fut.done():
                fut.set_result(value)

    def wait_for(self, event: ClientEvent, timeout: float | None = None) -> Any:
        """
        Return an awaitable resolved by the next emission of event.

        The waiter is registered immediately, so an emission caused by a call
        made right after wait_for() is not missed.
        """
        event = ClientEvent(event)
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[Any] = loop.create_future()
        self._waiters.setdefault(event, []).append(fut)
        if timeout is None:
            return fut
        return self._bounded_wait(event, fut, timeout)

    async def _bounded_wait(self, event: ClientEvent, fut: asyncio.Future[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(fut, timeout)
        finally:
            self.discard_waiter(event, fut)

    def discard_waiter(self, event: ClientEvent, fut: asyncio.Future[Any]) -> None:
        """Forget a waiter that will not be awaited any more."""
        waiters = self._waiters.get(ClientEvent(event))
        if waiters and fut in waiters:
            waiters.remove(fut)
            if not waiters:
                del self._waiters[ClientEvent(event)]

    def waiter_count(self, event: ClientEvent) -> int:
        return len(self._waiters.get(ClientEvent(event), []))
