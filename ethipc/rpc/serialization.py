"""Serialization helpers for JSON-RPC envelopes on the IPC stream."""

from __future__ import annotations

import json
import re
from typing import Any

from ethipc.rpc.protocol import JSONRPC_VERSION, RpcError, RpcRequest, RpcResponse
from ethipc.utils.exceptions import ProtocolError

DEFAULT_MAX_BUFFER_BYTES = 4 * 1024 * 1024

_WHITESPACE = " \t\r\n"
_LITERALS = ("true", "false", "null")
_PARTIAL_ESCAPE = re.compile(r"\\?u[0-9a-fA-F]{0,4}")
_PARTIAL_NUMBER = re.compile(r"(\.[0-9]*)?([eE][+-]?[0-9]*)?")


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def request_to_json(request: RpcRequest) -> dict[str, Any]:
    """Build the request envelope object."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": request.method,
        "id": request.call_id,
        "params": list(request.params),
    }


def encode_request(request: RpcRequest) -> bytes:
    """Encode a request envelope as one line of UTF-8 JSON."""
    return (json.dumps(request_to_json(request), ensure_ascii=False) + "\n").encode("utf-8")


def normalize_rpc_error(error: Any) -> RpcError:
    """Normalize an error payload; missing or non-int codes become 0."""
    row = safe_dict(error)
    code = row.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        code = 0
    message = row.get("message")
    return RpcError(
        code=code,
        message=str(message) if message is not None else "Remote call failed",
        data=row.get("data"),
    )


def decode_response_payload(payload: Any) -> RpcResponse:
    """Decode one parsed envelope into RpcResponse."""
    if not isinstance(payload, dict):
        raise ProtocolError("Response is not a JSON object", {"type": type(payload).__name__})
    result = payload.get("result")
    has_result = result is not None
    error = None
    if not has_result and "error" in payload and payload["error"] is not None:
        error = normalize_rpc_error(payload["error"])
    return RpcResponse(id=payload.get("id"), result=result, error=error, has_result=has_result)


class ResponseBuffer:
    """
    Incremental framer for the IPC byte stream.

    Nodes write one JSON document per response, usually newline terminated,
    but a single socket read may hold part of a document or several of them.
    Bytes are accumulated and every complete top-level document is returned;
    an incomplete tail is kept for the next feed.
    """

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        self.max_buffer_bytes = max_buffer_bytes
        self._raw = bytearray()
        self._decoder = json.JSONDecoder()

    def __len__(self) -> int:
        return len(self._raw)

    def clear(self) -> None:
        self._raw.clear()

    def feed(self, data: bytes) -> list[Any]:
        self._raw.extend(data)
        try:
            # a multi-byte character may be split across reads
            text = self._raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            if exc.reason == "unexpected end of data" and exc.end == len(self._raw):
                text = self._raw[: exc.start].decode("utf-8", errors="strict")
            else:
                self.clear()
                raise ProtocolError(f"Response is not valid UTF-8: {exc.reason}") from exc

        documents: list[Any] = []
        pos = 0
        end = len(text)
        while True:
            while pos < end and text[pos] in _WHITESPACE:
                pos += 1
            if pos >= end:
                break
            try:
                doc, pos = self._decoder.raw_decode(text, pos)
            except RecursionError as exc:
                self.clear()
                raise ProtocolError("Response nesting too deep", {"pos": pos}) from exc
            except json.JSONDecodeError as exc:
                if _is_truncated(text, exc):
                    break
                self.clear()
                raise ProtocolError(f"Response parse error: {exc.msg}", {"pos": exc.pos}) from exc
            documents.append(doc)

        consumed = len(text[:pos].encode("utf-8"))
        del self._raw[:consumed]
        if len(self._raw) > self.max_buffer_bytes:
            self.clear()
            raise ProtocolError("Response exceeded buffer limit", {"max_buffer_bytes": self.max_buffer_bytes})
        return documents


def _is_truncated(text: str, exc: json.JSONDecodeError) -> bool:
    """True when the decode error only means the document has not fully arrived."""
    if exc.pos >= len(text):
        return True
    # an unterminated string reports the position of its opening quote
    if exc.msg.startswith("Unterminated string"):
        return True
    tail = text[exc.pos:]
    if exc.msg == "Expecting value":
        return tail == "-" or any(lit.startswith(tail) for lit in _LITERALS)
    # a \uXXXX escape cut before its last hex digit arrived
    if exc.msg.startswith("Invalid \\uXXXX escape"):
        return _PARTIAL_ESCAPE.fullmatch(tail) is not None
    # a number cut right after its "." or exponent marker: "1." or "2e+"
    if exc.msg == "Expecting ',' delimiter":
        return (
            bool(tail)
            and exc.pos > 0
            and text[exc.pos - 1].isdigit()
            and _PARTIAL_NUMBER.fullmatch(tail) is not None
        )
    return False
