"""Tests for awaiting client operations from the CLI."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from ethipc.cli.rpc_utils import OperationFailed, run_operation
from ethipc.rpc.events import ClientEvent, EventEmitter
from ethipc.utils.exceptions import EthIpcError


def _client() -> SimpleNamespace:
    return SimpleNamespace(events=EventEmitter())


def _assert_no_waiters(client: SimpleNamespace) -> None:
    assert client.events.waiter_count(ClientEvent.ERROR) == 0
    assert client.events.waiter_count(ClientEvent.BLOCK_NUMBER_DONE) == 0


@pytest.mark.asyncio
async def test_returns_done_payload() -> None:
    client = _client()
    loop = asyncio.get_running_loop()

    def trigger() -> None:
        loop.call_soon(client.events.emit, ClientEvent.BLOCK_NUMBER_DONE, 42)

    assert await run_operation(client, trigger, ClientEvent.BLOCK_NUMBER_DONE, timeout=1) == 42
    _assert_no_waiters(client)


@pytest.mark.asyncio
async def test_error_event_raises_operation_failed() -> None:
    client = _client()
    loop = asyncio.get_running_loop()

    def trigger() -> None:
        loop.call_soon(client.events.emit, ClientEvent.ERROR, "boom", -32000)

    with pytest.raises(OperationFailed) as exc_info:
        await run_operation(client, trigger, ClientEvent.BLOCK_NUMBER_DONE, timeout=1)
    assert exc_info.value.message == "boom"
    assert exc_info.value.rpc_code == -32000
    _assert_no_waiters(client)


@pytest.mark.asyncio
async def test_silence_times_out_without_leaking_waiters() -> None:
    client = _client()
    for _ in range(3):
        with pytest.raises(EthIpcError) as exc_info:
            await run_operation(client, lambda: None, ClientEvent.BLOCK_NUMBER_DONE, timeout=0.01)
        assert exc_info.value.code == "TIMEOUT"
    _assert_no_waiters(client)


@pytest.mark.asyncio
async def test_failing_trigger_leaves_no_waiters() -> None:
    client = _client()

    def trigger() -> None:
        raise EthIpcError("not connected", code="NOT_CONNECTED")

    with pytest.raises(EthIpcError, match="not connected"):
        await run_operation(client, trigger, ClientEvent.BLOCK_NUMBER_DONE, timeout=1)
    _assert_no_waiters(client)
