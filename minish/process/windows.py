"""Windows backend: ``CreateProcess`` through ``subprocess`` and reader threads.

Anonymous pipes on Windows cannot be polled, so each captured stream gets a
thread that blocks on reads until end of file.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from typing import Any

from ..capture import CHUNK_SIZE, IOConfig, StreamSink
from ..exceptions import ReadError
from .base import CaptureSession, Job, ProcessBackend

logger = logging.getLogger(__name__)


class ThreadedCapture(CaptureSession):
    def __init__(self, io: IOConfig) -> None:
        super().__init__(io)
        self._errors: list[BaseException] = []
        self._errors_lock = threading.Lock()
        self._readers = [
            threading.Thread(
                target=self._read_stream,
                args=(self._fds["stdout_r"], self.stdout_sink),
                name="minish-stdout-reader",
                daemon=True,
            ),
            threading.Thread(
                target=self._read_stream,
                args=(self._fds["stderr_r"], self.stderr_sink),
                name="minish-stderr-reader",
                daemon=True,
            ),
        ]
        self._writer: threading.Thread | None = None
        payload = io.stdin_bytes
        if payload:
            self._writer = threading.Thread(
                target=self._write_input,
                args=(self._fds["stdin_w"], payload),
                name="minish-stdin-writer",
                daemon=True,
            )
        else:
            self._close_fd("stdin_w")
        for thread in self._threads():
            thread.start()

    def _threads(self) -> list[threading.Thread]:
        return self._readers + ([self._writer] if self._writer is not None else [])

    def _record(self, error: BaseException) -> None:
        with self._errors_lock:
            self._errors.append(error)

    def _read_stream(self, fd: int, sink: StreamSink) -> None:
        failure: BaseException | None = None
        while True:
            try:
                chunk = os.read(fd, CHUNK_SIZE)
            except OSError as exc:
                failure = ReadError(f"read: {exc.strerror}")
                break
            if not chunk:
                break
            if failure is not None:
                continue
            # Keep reading after a callback failure so the child never blocks on a full pipe.
            try:
                sink.feed(chunk)
            except Exception as exc:
                failure = exc
        if failure is not None:
            self._record(failure)

    def _write_input(self, fd: int, payload: bytes) -> None:
        view = memoryview(payload)
        try:
            while view:
                written = os.write(fd, view[:CHUNK_SIZE])
                view = view[written:]
        except OSError as exc:
            # Windows reports a vanished reader as EINVAL rather than EPIPE.
            logger.debug("stdin reader went away with %d bytes unsent: %s", len(view), exc)
        finally:
            self._close_fd("stdin_w")

    def wait(self, job: Job) -> int:
        return job.wait()

    def _drain(self) -> None:
        for thread in self._threads():
            thread.join()
        if self._errors:
            raise self._errors[0]


class WindowsBackend(ProcessBackend):
    capture_class = ThreadedCapture

    def popen_options(self, background: bool) -> dict[str, Any]:
        if not background:
            return {}
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}


__all__ = ["ThreadedCapture", "WindowsBackend"]
