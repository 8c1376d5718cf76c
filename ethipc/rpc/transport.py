"""Unix domain socket transport for the node IPC endpoint."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from loguru import logger

from ethipc.utils.exceptions import TransportError, classify_exception

DEFAULT_READ_CHUNK_SIZE = 4096

DataHandler = Callable[[bytes], None]
ErrorHandler = Callable[[TransportError], None]


@runtime_checkable
class Transport(Protocol):
    """Byte channel driven by IpcClient."""

    @property
    def is_connected(self) -> bool: ...
    @property
    def is_writable(self) -> bool: ...

    def set_handlers(self, on_data: DataHandler, on_error: ErrorHandler) -> None: ...
    async def open(self, path: str) -> None: ...
    def write(self, data: bytes) -> int: ...
    def abort(self) -> None: ...
    async def close(self) -> None: ...


class UnixSocketTransport:
    """
    Persistent asyncio stream connection to a local socket.

    A reader task forwards every chunk to on_data; read failures and EOF are
    reported once through on_error. abort() and close() are silent.
    """

    def __init__(self, *, read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE):
        self.read_chunk_size = read_chunk_size
        self.path: str | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._on_data: DataHandler | None = None
        self._on_error: ErrorHandler | None = None

    @property
    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    @property
    def is_writable(self) -> bool:
        return self.is_connected

    def set_handlers(self, on_data: DataHandler, on_error: ErrorHandler) -> None:
        self._on_data = on_data
        self._on_error = on_error

    async def open(self, path: str) -> None:
        if self._writer is not None:
            raise TransportError("Already connected")
        socket_path = str(Path(path).expanduser())
        try:
            reader, writer = await asyncio.open_unix_connection(socket_path)
        except OSError as exc:
            raise TransportError(exc.strerror or str(exc), errno=exc.errno) from exc
        self.path = socket_path
        self._reader, self._writer = reader, writer
        self._reader_task = asyncio.get_running_loop().create_task(self._read_loop())
        logger.debug("IPC transport connected: {}", socket_path)

    def write(self, data: bytes) -> int:
        writer = self._writer
        if writer is None or writer.is_closing():
            raise TransportError("Socket not writeable")
        if not data:
            raise TransportError("Error on socket write: empty payload")
        try:
            writer.write(data)
        except (ConnectionError, OSError) as exc:
            raise TransportError(f"Error on socket write: {exc}") from exc
        return len(data)

    async def _read_loop(self) -> None:
        reader = self._reader
        assert reader is not None
        try:
            while True:
                chunk = await reader.read(self.read_chunk_size)
                if not chunk:
                    self._fail(TransportError("Connection closed by peer"))
                    return
                if self._on_data is not None:
                    self._on_data(chunk)
                if self._reader is not reader:
                    return
        except asyncio.CancelledError:
            raise
        except (ConnectionError, OSError) as exc:
            self._fail(TransportError(f"Error on socket read: {exc}"))
        except Exception as exc:
            code, category = classify_exception(exc)
            logger.exception("IPC reader stopped by {} ({})", code, category.value)
            self._fail(TransportError(f"Error on socket read: {exc}"))

    def _fail(self, error: TransportError) -> None:
        self._drop()
        if self._on_error is not None:
            self._on_error(error)

    def _drop(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        self._reader_task = None
        if writer is not None and not writer.is_closing():
            writer.close()

    def abort(self) -> None:
        task = self._reader_task
        self._drop()
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def close(self) -> None:
        writer = self._writer
        self.abort()
        if writer is not None:
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
