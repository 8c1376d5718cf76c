"""
IPC client for a local Ethereum node.

Wallet operations are serialized into a single JSON-RPC call stream:
- active: at most one dispatched request; its call id must match the reply.
- pending: requests issued while the channel is busy, drained in FIFO order.
- bail: any transport or protocol failure resets active, clears pending and
  emits exactly one error event; nothing is retried.

All operation methods return immediately; results arrive as ClientEvent
notifications on ``client.events``.
"""

from __future__ import annotations

import asyncio
import dataclasses
from enum import IntEnum
from typing import Any, Callable

from loguru import logger

from ethipc.accounts import AccountInfo
from ethipc.config.schema import Config
from ethipc.rpc.events import ClientEvent, EventEmitter
from ethipc.rpc.protocol import CallIdCounter, OperationKind, RpcRequest
from ethipc.rpc.queue import RequestQueue
from ethipc.rpc.serialization import ResponseBuffer, decode_response_payload, encode_request
from ethipc.rpc.transport import Transport, UnixSocketTransport
from ethipc.utils.exceptions import (
    ConnectTimeoutError,
    EthIpcError,
    ProtocolError,
    RemoteError,
    TransportError,
    ValidationError,
    sanitize_error_message,
)
from ethipc.utils.units import ether_to_wei_hex, hex_to_ether_str, hex_to_uint64, parse_hex_quantity, to_hex_quantity


class ConnectionState(IntEnum):
    DISCONNECTED = 0
    CONNECTED = 1


class PeerHealth(IntEnum):
    DISCONNECTED = 0
    POOR = 1
    FAIR = 2
    GOOD = 3


_HEALTH_LABELS = {
    PeerHealth.DISCONNECTED: "Disconnected",
    PeerHealth.POOR: "Connected (poor peer count)",
    PeerHealth.FAIR: "Connected (fair peer count)",
    PeerHealth.GOOD: "Connected (good peer count)",
}


def classify_peer_count(count: int, fair_threshold: int, good_threshold: int) -> PeerHealth:
    """Coarse health of a connected node from its peer count."""
    if count >= good_threshold:
        return PeerHealth.GOOD
    if count >= fair_threshold:
        return PeerHealth.FAIR
    return PeerHealth.POOR


def _id_matches(raw_id: Any, call_id: int) -> bool:
    return isinstance(raw_id, int) and not isinstance(raw_id, bool) and raw_id == call_id


Handler = Callable[[RpcRequest, Any], None]


class IpcClient:
    """Single-outstanding-request JSON-RPC client over a local socket."""

    def __init__(self, config: Config | None = None, *, transport: Transport | None = None):
        self.config = config or Config()
        node = self.config.node
        self._transport: Transport = transport or UnixSocketTransport(read_chunk_size=node.read_chunk_size)
        self._transport.set_handlers(self._on_data, self._on_transport_error)
        self.events = EventEmitter()
        self._call_ids = CallIdCounter()
        self._queue = RequestQueue()
        self._buffer = ResponseBuffer(node.max_buffer_bytes)
        self._active: RpcRequest | None = None
        self._connecting = False
        self._busy_reported = False
        self._path: str | None = None
        self._error = ""
        self._code = 0
        self._accounts: list[AccountInfo] = []
        self._peer_count = 0
        self._pending_filter_id: int | None = None
        self._handlers: dict[OperationKind, Handler] = {
            OperationKind.GET_ACCOUNT_REFS: self._handle_account_refs,
            OperationKind.GET_BALANCE: self._handle_balance,
            OperationKind.GET_TRANSACTION_COUNT: self._handle_transaction_count,
            OperationKind.NEW_ACCOUNT: self._handle_new_account,
            OperationKind.DELETE_ACCOUNT: self._handle_delete_account,
            OperationKind.UNLOCK_ACCOUNT: self._handle_unlock_account,
            OperationKind.GET_BLOCK_NUMBER: self._handle_block_number,
            OperationKind.GET_PEER_COUNT: self._handle_peer_count,
            OperationKind.GET_GAS_PRICE: self._handle_gas_price,
            OperationKind.SEND_TRANSACTION: self._handle_send_transaction,
            OperationKind.NEW_PENDING_TRANSACTION_FILTER: self._handle_pending_filter,
        }
        missing = set(OperationKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"no result handler for: {sorted(k.name for k in missing)}")

    async def __aenter__(self) -> IpcClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._active is not None or self._connecting

    @property
    def error(self) -> str:
        return self._error

    @property
    def code(self) -> int:
        return self._code

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def active_request(self) -> RpcRequest | None:
        return self._active

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    def pending_requests(self) -> list[RpcRequest]:
        return list(self._queue)

    def queue_status(self) -> dict[str, Any]:
        status = self._queue.status()
        status["activeCallId"] = self._active.call_id if self._active else None
        status["activeMethod"] = self._active.method if self._active else None
        return status

    @property
    def accounts(self) -> list[AccountInfo]:
        return list(self._accounts)

    @property
    def peer_count(self) -> int:
        return self._peer_count

    @property
    def pending_transactions_filter_id(self) -> int | None:
        return self._pending_filter_id

    @property
    def connection_state(self) -> ConnectionState:
        if self._transport.is_connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def connection_health(self) -> PeerHealth:
        if self.connection_state is ConnectionState.DISCONNECTED:
            return PeerHealth.DISCONNECTED
        peers = self.config.peers
        return classify_peer_count(self._peer_count, peers.fair_threshold, peers.good_threshold)

    @property
    def connection_state_str(self) -> str:
        return _HEALTH_LABELS[self.connection_health]

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, path: str | None = None) -> bool:
        """
        Open the IPC channel; returns True when connected.

        The attempt is bounded by node.connect_timeout_seconds. Failures are
        reported through the error event like any other pipeline abort.
        """
        target = path or self.config.node.ipc_path
        if self._connecting or self._transport.is_connected:
            self._bail(TransportError("Already connected"))
            return False
        self._path = target
        self._connecting = True
        self._sync_busy()
        timeout = self.config.node.connect_timeout_seconds
        try:
            await asyncio.wait_for(self._transport.open(target), timeout)
        except asyncio.TimeoutError:
            self._connecting = False
            self._transport.abort()
            self._bail(ConnectTimeoutError(target, timeout))
            return False
        except EthIpcError as exc:
            self._connecting = False
            self._bail(exc)
            return False
        except OSError as exc:
            self._connecting = False
            self._bail(TransportError(str(exc), errno=exc.errno))
            return False
        self._on_connected()
        return True

    def _on_connected(self) -> None:
        self._connecting = False
        logger.info("Connected to node IPC at {}", self._path)
        self._done()
        self.new_pending_transaction_filter()
        self.events.emit(ClientEvent.CONNECT_DONE)
        self.events.emit(ClientEvent.CONNECTION_STATE_CHANGED)

    def _on_transport_error(self, error: TransportError) -> None:
        self._bail(error)

    async def close(self) -> None:
        """Drop the channel and everything outstanding without an error event."""
        was_connected = self._transport.is_connected
        dropped = self._queue.clear()
        self._active = None
        self._connecting = False
        self._buffer.clear()
        await self._transport.close()
        if was_connected:
            logger.info("Disconnected from node IPC (dropped {} queued call(s))", dropped)
            self.events.emit(ClientEvent.CONNECTION_STATE_CHANGED)
        self._sync_busy()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_accounts(self) -> RpcRequest | None:
        return self._submit(OperationKind.GET_ACCOUNT_REFS)

    def new_account(self, password: str, index: int = -1) -> RpcRequest | None:
        return self._submit(OperationKind.NEW_ACCOUNT, [password], index)

    def delete_account(self, hash: str, password: str, index: int = -1) -> RpcRequest | None:
        return self._submit(OperationKind.DELETE_ACCOUNT, [hash, password], index)

    def unlock_account(
        self,
        hash: str,
        password: str,
        duration: int | None = None,
        index: int = -1,
    ) -> RpcRequest | None:
        seconds = self.config.wallet.unlock_duration_seconds if duration is None else duration
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            raise ValidationError("Invalid unlock duration", field="duration")
        return self._submit(OperationKind.UNLOCK_ACCOUNT, [hash, password, to_hex_quantity(seconds)], index)

    def get_block_number(self) -> RpcRequest | None:
        return self._submit(OperationKind.GET_BLOCK_NUMBER)

    def get_peer_count(self) -> RpcRequest | None:
        return self._submit(OperationKind.GET_PEER_COUNT)

    def get_gas_price(self) -> RpcRequest | None:
        return self._submit(OperationKind.GET_GAS_PRICE)

    def send_transaction(self, from_: str, to: str, value: Any) -> RpcRequest | None:
        """
        Submit eth_sendTransaction; value is an ether amount.

        Raises ValidationError before any call id is allocated when the value
        is not a positive whole number of wei or an address is missing.
        """
        for name, address in (("from", from_), ("to", to)):
            if not isinstance(address, str) or not address.strip():
                raise ValidationError(f"Invalid '{name}' address", field=name)
        wei_hex = ether_to_wei_hex(value)
        return self._submit(OperationKind.SEND_TRANSACTION, [{"from": from_, "to": to, "value": wei_hex}])

    def new_pending_transaction_filter(self) -> RpcRequest | None:
        return self._submit(OperationKind.NEW_PENDING_TRANSACTION_FILTER)

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def _submit(
        self,
        kind: OperationKind,
        params: list[Any] | None = None,
        index: int = -1,
    ) -> RpcRequest | None:
        request = self._call_ids.build(kind, params, index)
        try:
            self._queue_request(request)
        except EthIpcError as exc:
            self._bail(exc)
            return None
        return request

    def _queue_request(self, request: RpcRequest) -> None:
        if self._active is None and not self._connecting:
            self._active = request
            self._sync_busy()
            self._write_active()
        else:
            self._queue.enqueue(request)

    def _write_active(self) -> None:
        request = self._active
        assert request is not None
        sent = self._transport.write(encode_request(request))
        if sent <= 0:
            raise TransportError("Error on socket write: nothing written")
        logger.debug(
            "IPC send id={} method={} params={}",
            request.call_id,
            request.method,
            request.redacted_params(),
        )

    def _done(self) -> None:
        """Retire the active request and dispatch the queue head, if any."""
        nxt = self._queue.dequeue_next()
        if nxt is None:
            self._active = None
            self._sync_busy()
            return
        self._active = nxt
        self._sync_busy()
        try:
            self._write_active()
        except EthIpcError as exc:
            self._bail(exc)

    def _bail(self, exc: EthIpcError) -> None:
        """Abort the pipeline: reset active, clear the queue, report once."""
        self._error = exc.message
        self._code = exc.rpc_code
        aborted = self._active
        dropped = self._queue.clear()
        self._active = None
        self._buffer.clear()
        logger.warning(
            "IPC pipeline aborted: {} (code={}, active={}, dropped={})",
            sanitize_error_message(self._error),
            self._code,
            aborted.method if aborted else None,
            dropped,
        )
        self.events.emit(ClientEvent.ERROR, self._error, self._code)
        self.events.emit(ClientEvent.CONNECTION_STATE_CHANGED)
        self._sync_busy()

    def _sync_busy(self) -> None:
        busy = self.busy
        if busy != self._busy_reported:
            self._busy_reported = busy
            self.events.emit(ClientEvent.BUSY_CHANGED, busy)

    # ------------------------------------------------------------------
    # Response dispatch
    # ------------------------------------------------------------------

    def _on_data(self, data: bytes) -> None:
        try:
            documents = self._buffer.feed(data)
        except ProtocolError as exc:
            self._bail(exc)
            return
        for payload in documents:
            if not self._dispatch(payload):
                # an abort discards whatever else arrived in the same read
                return

    def _dispatch(self, payload: Any) -> bool:
        request = self._active
        if request is None:
            raw_id = payload.get("id") if isinstance(payload, dict) else None
            logger.warning("Dropping IPC response with no call outstanding (id={})", raw_id)
            return True
        try:
            response = decode_response_payload(payload)
            logger.debug("IPC recv id={} method={}", response.id, request.method)
            if not _id_matches(response.id, request.call_id):
                raise ProtocolError(
                    "Call number mismatch",
                    {"expected": request.call_id, "received": response.id},
                )
            if response.has_result:
                self._handlers[request.kind](request, response.result)
            elif response.error is not None:
                raise RemoteError(response.error.message, response.error.code, response.error.data)
            else:
                raise ProtocolError("Result object undefined in IPC response")
        except EthIpcError as exc:
            self._bail(exc)
            return False
        if self._active is request:
            self._done()
        return True

    def _decode(self, request: RpcRequest, decoder: Callable[[Any], Any], result: Any) -> Any:
        try:
            return decoder(result)
        except ValueError as exc:
            raise ProtocolError(f"Invalid {request.method} result: {exc}") from exc

    def _ether(self, value: Any) -> str:
        return hex_to_ether_str(value, self.config.display.decimal_point)

    def _account_at(self, request: RpcRequest) -> AccountInfo:
        if not 0 <= request.index < len(self._accounts):
            raise ProtocolError(f"No account at index {request.index}")
        return self._accounts[request.index]

    def _handle_account_refs(self, request: RpcRequest, result: Any) -> None:
        if not isinstance(result, list) or not all(isinstance(h, str) for h in result):
            raise ProtocolError("Account list must be an array of strings")
        self._accounts = [AccountInfo(hash=h) for h in result]
        for i, account_hash in enumerate(result):
            params = [account_hash, "latest"]
            self._queue_request(self._call_ids.build(OperationKind.GET_BALANCE, params, i))
            self._queue_request(self._call_ids.build(OperationKind.GET_TRANSACTION_COUNT, params, i))
        if not result:
            self.events.emit(ClientEvent.ACCOUNTS_READY, [])

    def _handle_balance(self, request: RpcRequest, result: Any) -> None:
        balance = self._decode(request, self._ether, result)
        self._account_at(request).balance = balance
        self.events.emit(ClientEvent.BALANCE_UPDATED, request.index, balance)

    def _handle_transaction_count(self, request: RpcRequest, result: Any) -> None:
        count = self._decode(request, hex_to_uint64, result)
        self._account_at(request).transaction_count = count
        self.events.emit(ClientEvent.TRANSACTION_COUNT_UPDATED, request.index, count)
        if request.index + 1 == len(self._accounts):
            self.events.emit(ClientEvent.ACCOUNTS_READY, [dataclasses.replace(a) for a in self._accounts])

    def _handle_new_account(self, request: RpcRequest, result: Any) -> None:
        if not isinstance(result, str):
            raise ProtocolError("personal_newAccount result must be an address string")
        self.events.emit(ClientEvent.NEW_ACCOUNT_DONE, result, request.index)

    def _handle_delete_account(self, request: RpcRequest, result: Any) -> None:
        self.events.emit(ClientEvent.DELETE_ACCOUNT_DONE, result is True, request.index)

    def _handle_unlock_account(self, request: RpcRequest, result: Any) -> None:
        self.events.emit(ClientEvent.UNLOCK_ACCOUNT_DONE, result is True, request.index)

    def _handle_block_number(self, request: RpcRequest, result: Any) -> None:
        self.events.emit(ClientEvent.BLOCK_NUMBER_DONE, self._decode(request, hex_to_uint64, result))

    def _handle_peer_count(self, request: RpcRequest, result: Any) -> None:
        self._peer_count = self._decode(request, hex_to_uint64, result)
        self.events.emit(ClientEvent.PEER_COUNT_CHANGED, self._peer_count)

    def _handle_gas_price(self, request: RpcRequest, result: Any) -> None:
        self.events.emit(ClientEvent.GAS_PRICE_DONE, self._decode(request, self._ether, result))

    def _handle_send_transaction(self, request: RpcRequest, result: Any) -> None:
        if not isinstance(result, str):
            raise ProtocolError("eth_sendTransaction result must be a transaction hash")
        self.events.emit(ClientEvent.SEND_TRANSACTION_DONE, result)

    def _handle_pending_filter(self, request: RpcRequest, result: Any) -> None:
        # filter ids are opaque quantities, often wider than 64 bits
        self._pending_filter_id = self._decode(request, parse_hex_quantity, result)
        self.events.emit(ClientEvent.PENDING_FILTER_INSTALLED, self._pending_filter_id)
