"""Utility functions for ethipc."""

from ethipc.utils.exceptions import (
    ConnectTimeoutError,
    ErrorCategory,
    EthIpcError,
    ProtocolError,
    RemoteError,
    TransportError,
    ValidationError,
    classify_exception,
    sanitize_error_message,
)
from ethipc.utils.units import (
    ether_to_wei,
    ether_to_wei_hex,
    format_wei,
    hex_to_ether_str,
    hex_to_uint64,
    parse_hex_quantity,
    to_hex_quantity,
    wei_to_ether,
)

__all__ = [
    "ConnectTimeoutError",
    "ErrorCategory",
    "EthIpcError",
    "ProtocolError",
    "RemoteError",
    "TransportError",
    "ValidationError",
    "classify_exception",
    "sanitize_error_message",
    "ether_to_wei",
    "ether_to_wei_hex",
    "format_wei",
    "hex_to_ether_str",
    "hex_to_uint64",
    "parse_hex_quantity",
    "to_hex_quantity",
    "wei_to_ether",
]
