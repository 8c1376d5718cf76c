"""Helpers that turn event-driven client operations into awaitable CLI steps."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from ethipc.client import IpcClient
from ethipc.rpc.events import ClientEvent
from ethipc.utils.exceptions import ErrorCategory, EthIpcError


class OperationFailed(EthIpcError):
    """The pipeline aborted while a CLI command waited for its result."""

    def __init__(self, message: str, rpc_code: int = 0):
        super().__init__(message, code="OPERATION_FAILED", category=ErrorCategory.FATAL, details={"rpc_code": rpc_code})
        self._rpc_code = rpc_code

    @property
    def rpc_code(self) -> int:
        return self._rpc_code


async def run_operation(
    client: IpcClient,
    trigger: Callable[[], Any],
    done_event: ClientEvent,
    *,
    timeout: float,
) -> Any:
    """
    Call trigger() and wait for done_event or the error event.

    Returns the done payload; raises OperationFailed on abort and
    EthIpcError(code="TIMEOUT") when the node stays silent.
    """
    done = client.events.wait_for(done_event)
    failed = client.events.wait_for(ClientEvent.ERROR)
    try:
        trigger()
        finished, _ = await asyncio.wait({done, failed}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for event, fut in ((done_event, done), (ClientEvent.ERROR, failed)):
            if not fut.done():
                fut.cancel()
            client.events.discard_waiter(event, fut)
    if done in finished:
        return done.result()
    if failed in finished:
        message, code = failed.result()
        raise OperationFailed(message, code)
    raise EthIpcError(
        f"No reply for {done_event.value} within {timeout}s",
        code="TIMEOUT",
        category=ErrorCategory.TIMEOUT,
    )
