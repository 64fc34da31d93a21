"""Caller-facing I/O control object and the capture accumulation buffer."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

StreamCallback = Callable[[bytes, Any], None]

CHUNK_SIZE = 4096


@dataclass
class IOConfig:
    """Capture and streaming settings for one ``interpret`` call.

    Passing an ``IOConfig`` switches the call into capture mode. For each
    output stream, either the callback receives every chunk as it arrives
    (and the matching ``stdout``/``stderr`` attribute stays ``None``), or the
    whole stream is accumulated into that attribute as ``bytes``; it is
    ``b""`` when nothing was written. ``stdin`` is fed to the child standard
    input and then closed.
    """

    stdin: bytes | str | None = None
    on_stdout: StreamCallback | None = None
    on_stderr: StreamCallback | None = None
    user_data: Any = None
    stdout: bytes | None = None
    stderr: bytes | None = None

    @property
    def stdin_bytes(self) -> bytes:
        if self.stdin is None:
            return b""
        if isinstance(self.stdin, str):
            return self.stdin.encode("utf-8")
        return bytes(self.stdin)

    @property
    def stdout_text(self) -> str:
        return (self.stdout or b"").decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return (self.stderr or b"").decode("utf-8", errors="replace")

    def reset(self) -> None:
        self.stdout = None
        self.stderr = None


class CaptureBuffer:
    """Growable byte buffer; capacity doubles until the next chunk fits."""

    def __init__(self) -> None:
        self._data = bytearray()
        self._length = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self._length

    def append(self, chunk: bytes) -> None:
        needed = len(chunk)
        if self.capacity - self._length < needed:
            capacity = self.capacity or CHUNK_SIZE
            while capacity - self._length < needed:
                capacity *= 2
            self._data.extend(bytes(capacity - self.capacity))
        self._data[self._length : self._length + needed] = chunk
        self._length += needed

    def getvalue(self) -> bytes:
        return bytes(self._data[: self._length])


class StreamSink:
    """Routes chunks of one child stream to a callback or a ``CaptureBuffer``.

    Chunks may arrive from reader threads and from in-process builtins, so
    ``feed`` holds a lock.
    """

    def __init__(self, callback: StreamCallback | None, user_data: Any) -> None:
        self.callback = callback
        self.user_data = user_data
        self.buffer = None if callback is not None else CaptureBuffer()
        self._lock = threading.Lock()

    def feed(self, chunk: bytes) -> None:
        with self._lock:
            if self.callback is not None:
                self.callback(chunk, self.user_data)
            else:
                self.buffer.append(chunk)

    def result(self) -> bytes | None:
        return None if self.buffer is None else self.buffer.getvalue()


__all__ = ["CHUNK_SIZE", "CaptureBuffer", "IOConfig", "StreamCallback", "StreamSink"]
