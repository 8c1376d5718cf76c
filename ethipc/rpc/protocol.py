"""JSON-RPC request/response models for the node IPC channel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

JSONRPC_VERSION = "2.0"


class OperationKind(str, Enum):
    """Closed set of wallet operations; the value is the JSON-RPC method."""

    GET_ACCOUNT_REFS = "personal_listAccounts"
    GET_BALANCE = "eth_getBalance"
    GET_TRANSACTION_COUNT = "eth_getTransactionCount"
    NEW_ACCOUNT = "personal_newAccount"
    DELETE_ACCOUNT = "personal_deleteAccount"
    UNLOCK_ACCOUNT = "personal_unlockAccount"
    GET_BLOCK_NUMBER = "eth_blockNumber"
    GET_PEER_COUNT = "net_peerCount"
    GET_GAS_PRICE = "eth_gasPrice"
    SEND_TRANSACTION = "eth_sendTransaction"
    NEW_PENDING_TRANSACTION_FILTER = "eth_newPendingTransactionFilter"


# Param positions holding a password; never logged verbatim.
PASSWORD_POSITIONS: dict[OperationKind, int] = {
    OperationKind.NEW_ACCOUNT: 0,
    OperationKind.DELETE_ACCOUNT: 1,
    OperationKind.UNLOCK_ACCOUNT: 1,
}


@dataclass(frozen=True, slots=True)
class RpcRequest:
    """One pending or dispatched call."""

    call_id: int
    kind: OperationKind
    method: str
    params: tuple[Any, ...] = ()
    index: int = -1

    def redacted_params(self) -> list[Any]:
        out = list(self.params)
        pos = PASSWORD_POSITIONS.get(self.kind)
        if pos is not None and pos < len(out):
            out[pos] = "***"
        return out


@dataclass(slots=True)
class RpcError:
    """Error object of a JSON-RPC response."""

    code: int
    message: str
    data: Any = None


@dataclass(slots=True)
class RpcResponse:
    """Decoded JSON-RPC response envelope."""

    id: Any
    result: Any = None
    error: RpcError | None = None
    has_result: bool = False


@dataclass(slots=True)
class CallIdCounter:
    """Strictly increasing call identifiers owned by one client."""

    next_id: int = 0

    def allocate(self) -> int:
        call_id = self.next_id
        self.next_id += 1
        return call_id

    def build(
        self,
        kind: OperationKind,
        params: list[Any] | tuple[Any, ...] | None = None,
        index: int = -1,
    ) -> RpcRequest:
        """Allocate an id and build the request for kind."""
        return RpcRequest(
            call_id=self.allocate(),
            kind=kind,
            method=kind.value,
            params=tuple(params or ()),
            index=index,
        )
