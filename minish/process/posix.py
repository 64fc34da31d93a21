"""POSIX backend: fork/exec through ``subprocess`` and a ``poll()`` capture loop."""

from __future__ import annotations

import logging
import os
import select
from typing import Any

from ..capture import CHUNK_SIZE, IOConfig, StreamSink
from ..exceptions import ReadError
from .base import CaptureSession, Job, ProcessBackend

logger = logging.getLogger(__name__)

# Interval between child exit checks while a foreground job is running.
POLL_INTERVAL_MS = 10


class PollCapture(CaptureSession):
    """Single-threaded capture: every parent-side end is non-blocking and
    multiplexed with ``select.poll``, including the stdin payload writes."""

    def __init__(self, io: IOConfig) -> None:
        super().__init__(io)
        try:
            self._poller = select.poll()
            self._streams: dict[int, StreamSink] = {}
            for name, sink in (("stdout_r", self.stdout_sink), ("stderr_r", self.stderr_sink)):
                fd = self._fds[name]
                os.set_blocking(fd, False)
                self._poller.register(fd, select.POLLIN)
                self._streams[fd] = sink
            self._pending_input = memoryview(io.stdin_bytes)
            if self._pending_input:
                os.set_blocking(self._fds["stdin_w"], False)
                self._poller.register(self._fds["stdin_w"], select.POLLOUT)
            else:
                self._close_fd("stdin_w")
        except BaseException:
            self._close_fds()
            raise

    def wait(self, job: Job) -> int:
        while job.poll() is None:
            self._pump(POLL_INTERVAL_MS)
        self._pump(0)
        return job.wait()

    def _drain(self) -> None:
        while self._streams:
            self._pump(None)
        if "stdin_w" in self._fds:
            self._poller.unregister(self._fds["stdin_w"])
            self._close_fd("stdin_w")

    def _pump(self, timeout: int | None) -> None:
        stdin_fd = self._fds.get("stdin_w")
        for fd, _ in self._poller.poll(timeout):
            if fd == stdin_fd:
                self._write_input(fd)
                continue
            sink = self._streams.get(fd)
            if sink is not None:
                self._read_available(fd, sink)

    def _write_input(self, fd: int) -> None:
        try:
            written = os.write(fd, self._pending_input[:CHUNK_SIZE])
        except BlockingIOError:
            return
        except BrokenPipeError:
            logger.debug("stdin reader went away with %d bytes unsent", len(self._pending_input))
            written = len(self._pending_input)
        self._pending_input = self._pending_input[written:]
        if not self._pending_input:
            self._poller.unregister(fd)
            self._close_fd("stdin_w")

    def _read_available(self, fd: int, sink: StreamSink) -> None:
        while True:
            try:
                chunk = os.read(fd, CHUNK_SIZE)
            except BlockingIOError:
                return
            except OSError as exc:
                self._forget(fd)
                raise ReadError(f"read: {exc.strerror}") from exc
            if not chunk:
                self._forget(fd)
                return
            sink.feed(chunk)

    def _forget(self, fd: int) -> None:
        self._poller.unregister(fd)
        del self._streams[fd]


class PosixBackend(ProcessBackend):
    capture_class = PollCapture

    def popen_options(self, background: bool) -> dict[str, Any]:
        # Background jobs leave the terminal's process group.
        return {"start_new_session": background}


__all__ = ["PollCapture", "PosixBackend"]
