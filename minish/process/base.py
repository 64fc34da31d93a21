"""Process handles and the backend/capture interfaces shared by both platforms."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..capture import IOConfig, StreamSink
from ..exceptions import CommandNotExecutable, CommandNotFound, PipeError, SpawnError

logger = logging.getLogger(__name__)

# A descriptor to wire into the child, ``subprocess.DEVNULL``, or ``None`` to inherit.
Target = int | None


def normalize_status(returncode: int) -> int:
    """Map a ``Popen.returncode`` to a shell status (signal N becomes 128+N)."""

    if returncode < 0:
        return 128 - returncode
    return returncode


@dataclass(eq=False)
class Job:
    """One live child process started by a backend."""

    argv: list[str]
    process: subprocess.Popen[bytes] = field(repr=False)
    background: bool = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def status(self) -> int | None:
        returncode = self.process.returncode
        return None if returncode is None else normalize_status(returncode)

    def poll(self) -> int | None:
        self.process.poll()
        return self.status

    def wait(self) -> int:
        self.process.wait()
        status = self.status
        logger.debug("job %d (%s) exited with %s", self.pid, self.argv[0], status)
        return status


class CaptureSession(ABC):
    """Pipes and drain logic for one capture-mode ``interpret`` call.

    The child-side ends (``stdin_fd``, ``stdout_fd``, ``stderr_fd``) are wired
    into every command that has no other input/output. ``close`` closes them,
    drains both output streams to end of file and stores the results on the
    ``IOConfig``. Every descriptor is closed by then, even on failure.
    """

    def __init__(self, io: IOConfig) -> None:
        self.io = io
        self.stdout_sink = StreamSink(io.on_stdout, io.user_data)
        self.stderr_sink = StreamSink(io.on_stderr, io.user_data)
        self._fds: dict[str, int] = {}
        self._fd_lock = threading.Lock()
        self._closed = False
        io.reset()
        try:
            for name in ("stdin", "stdout", "stderr"):
                read_fd, write_fd = os.pipe()
                self._fds[f"{name}_r"] = read_fd
                self._fds[f"{name}_w"] = write_fd
        except OSError as exc:
            self._close_fds()
            raise PipeError(f"pipe: {exc.strerror}") from exc

    @property
    def stdin_fd(self) -> int:
        return self._fds["stdin_r"]

    @property
    def stdout_fd(self) -> int:
        return self._fds["stdout_w"]

    @property
    def stderr_fd(self) -> int:
        return self._fds["stderr_w"]

    def sink_for(self, fd: int | None) -> StreamSink | None:
        """Return the sink behind a child-side output descriptor, if ``fd`` is one."""

        if fd is None:
            return None
        if fd == self._fds.get("stdout_w"):
            return self.stdout_sink
        if fd == self._fds.get("stderr_w"):
            return self.stderr_sink
        return None

    def _close_fd(self, name: str) -> None:
        with self._fd_lock:
            fd = self._fds.pop(name, None)
        if fd is not None:
            os.close(fd)

    def _close_fds(self) -> None:
        for name in list(self._fds):
            self._close_fd(name)

    @abstractmethod
    def wait(self, job: Job) -> int:
        """Wait for a foreground job while keeping the output streams drained."""

    @abstractmethod
    def _drain(self) -> None:
        """Read both output streams until end of file."""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            for name in ("stdin_r", "stdout_w", "stderr_w"):
                self._close_fd(name)
            self._drain()
        finally:
            self._close_fds()
            self.io.stdout = self.stdout_sink.result()
            self.io.stderr = self.stderr_sink.result()

    def __enter__(self) -> CaptureSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ProcessBackend(ABC):
    """Starts children and builds capture sessions for one platform."""

    capture_class: type[CaptureSession]

    def spawn(
        self,
        argv: list[str],
        *,
        stdin: Target = None,
        stdout: Target = None,
        stderr: Target = None,
        background: bool = False,
    ) -> Job:
        if background and stdin is None:
            stdin = subprocess.DEVNULL
        try:
            process = subprocess.Popen(
                argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                close_fds=True,
                **self.popen_options(background),
            )
        except FileNotFoundError as exc:
            raise CommandNotFound(f"{argv[0]}: command not found") from exc
        except PermissionError as exc:
            raise CommandNotExecutable(f"{argv[0]}: {exc.strerror}") from exc
        except OSError as exc:
            raise SpawnError(f"{argv[0]}: {exc.strerror}") from exc
        job = Job(argv, process, background)
        logger.debug("spawned %s as pid %d%s", argv, job.pid, " (background)" if background else "")
        return job

    @abstractmethod
    def popen_options(self, background: bool) -> dict[str, Any]:
        """Extra ``Popen`` keywords for this platform."""

    def open_capture(self, io: IOConfig) -> CaptureSession:
        return self.capture_class(io)


__all__ = ["CaptureSession", "Job", "ProcessBackend", "Target", "normalize_status"]
