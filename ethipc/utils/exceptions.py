"""
Exception hierarchy for ethipc.

Provides:
- A base exception carrying a string code, a category and details
- Transport, protocol, remote and validation errors raised by the IPC pipeline
- Safe error message formatting (passwords and secrets are never logged)
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    REMOTE = "remote"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    FATAL = "fatal"


class EthIpcError(Exception):
    """Base exception for all ethipc errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    @property
    def rpc_code(self) -> int:
        """Numeric code reported to observers; 0 when the failure has none."""
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class TransportError(EthIpcError):
    """Socket-level failure: connect refused, write/read failed, disconnect."""

    def __init__(self, message: str, errno: int | None = None):
        details = {"errno": errno} if errno is not None else {}
        super().__init__(message, code="TRANSPORT_ERROR", category=ErrorCategory.TRANSPORT, details=details)


class ConnectTimeoutError(TransportError):
    """The IPC endpoint did not accept the connection before the deadline."""

    def __init__(self, path: str, timeout_seconds: float):
        super().__init__(f"Connection to {path} timed out after {timeout_seconds}s")
        self.code = "CONNECT_TIMEOUT"
        self.category = ErrorCategory.TIMEOUT
        self.details = {"path": path, "timeout_seconds": timeout_seconds}


class ProtocolError(EthIpcError):
    """Malformed JSON, identifier mismatch or a response without a result."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="PROTOCOL_ERROR", category=ErrorCategory.PROTOCOL, details=details)


class RemoteError(EthIpcError):
    """Well-formed JSON-RPC error object returned by the node."""

    def __init__(self, message: str, rpc_code: int = 0, data: Any = None):
        details: dict[str, Any] = {"rpc_code": rpc_code}
        if data is not None:
            details["data"] = data
        super().__init__(message, code="REMOTE_ERROR", category=ErrorCategory.REMOTE, details=details)
        self._rpc_code = rpc_code

    @property
    def rpc_code(self) -> int:
        return self._rpc_code


class ValidationError(EthIpcError):
    """Caller-supplied argument is invalid; raised before any I/O."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", category=ErrorCategory.VALIDATION, details=details)


_SENSITIVE_PATTERNS = [
    re.compile(r"(password|passphrase|secret|token)[=:]\s*['\"]?([^\s'\",]+)['\"]?", re.IGNORECASE),
    re.compile(r"0x[a-fA-F0-9]{64}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory]:
    """Return (error_code, category) for any exception reaching the pipeline."""
    if isinstance(exc, EthIpcError):
        return exc.code, exc.category
    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT
    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.PROTOCOL
    if isinstance(exc, (ConnectionError, OSError)):
        return "TRANSPORT_ERROR", ErrorCategory.TRANSPORT
    if isinstance(exc, (ValueError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION
    return "INTERNAL_ERROR", ErrorCategory.FATAL
