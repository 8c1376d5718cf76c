"""JSON-RPC plumbing for the node IPC channel."""

from ethipc.rpc.events import ClientEvent, EventEmitter
from ethipc.rpc.protocol import CallIdCounter, OperationKind, RpcError, RpcRequest, RpcResponse
from ethipc.rpc.queue import RequestQueue
from ethipc.rpc.serialization import ResponseBuffer, decode_response_payload, encode_request
from ethipc.rpc.transport import Transport, UnixSocketTransport

__all__ = [
    "CallIdCounter",
    "ClientEvent",
    "EventEmitter",
    "OperationKind",
    "RequestQueue",
    "ResponseBuffer",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
    "Transport",
    "UnixSocketTransport",
    "decode_response_payload",
    "encode_request",
]
