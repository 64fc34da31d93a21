"""Tree walker that wires descriptors and runs builtins or child processes."""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import TYPE_CHECKING, TextIO

from ..exceptions import (
    CommandNotExecutable,
    CommandNotFound,
    PipeError,
    RedirectError,
    ShellError,
    ShellStatus,
    TreeError,
)
from ..nodes import Node, NodeKind
from .common import BuiltinHandler, CommandResult, ExecContext

if TYPE_CHECKING:
    from ..process import Job
    from .core import Interpreter

logger = logging.getLogger(__name__)

_WRITE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
_FILE_MODE = 0o644


class Executor:
    """Evaluates a parsed tree against the interpreter's backend.

    All per-step state travels in the ``ExecContext`` argument, so one
    executor can serve concurrent calls.
    """

    def __init__(self, interpreter: "Interpreter") -> None:
        self.interpreter = interpreter

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------
    def execute(self, node: Node | None, ctx: ExecContext) -> int:
        if node is None:
            return ShellStatus.OK
        if node.kind in (NodeKind.SEQ, NodeKind.BACKGROUND):
            return self._eval_sequence(node, ctx)
        try:
            if node.kind is NodeKind.PIPE:
                return self._eval_pipeline(node, ctx)
            if node.kind in (NodeKind.REDIR_IN, NodeKind.REDIR_OUT):
                return self._eval_redirection(node, ctx)
            return self._eval_command(node, ctx)
        except ShellError as exc:
            logger.warning("%s failed: %s", node.kind.value.lower(), exc)
            self.report(ctx, f"minish: {exc}\n")
            return int(exc.code)

    def _eval_sequence(self, node: Node, ctx: ExecContext) -> int:
        status: int = ShellStatus.OK
        current: Node | None = node
        while current is not None and current.kind in (NodeKind.SEQ, NodeKind.BACKGROUND):
            left_ctx = ctx.derive(background=True) if current.kind is NodeKind.BACKGROUND else ctx
            status = self.execute(current.left, left_ctx)
            current = current.right
        if current is None:
            return status
        return self.execute(current, ctx)

    def _eval_redirection(self, node: Node, ctx: ExecContext) -> int:
        if node.token is None:
            raise TreeError("redirection without a target")
        path = node.token.text
        if node.kind is NodeKind.REDIR_IN:
            flags = os.O_RDONLY
        else:
            flags = _WRITE_FLAGS
        flags |= getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(path, flags, _FILE_MODE)
        except OSError as exc:
            raise RedirectError(f"{path}: {exc.strerror}") from exc
        try:
            if node.kind is NodeKind.REDIR_IN:
                return self.execute(node.right, ctx.derive(input_fd=fd))
            return self.execute(node.right, ctx.derive(output_fd=fd))
        finally:
            os.close(fd)

    def _eval_pipeline(self, node: Node, ctx: ExecContext) -> int:
        jobs: list[Job] = []
        writers: list[threading.Thread] = []
        stage_ctx = ctx.derive(pending=jobs, writers=writers)
        read_fd: int | None = None
        try:
            try:
                while node.kind is NodeKind.PIPE:
                    if node.right is None:
                        raise TreeError("pipe without a right-hand stage")
                    read_end, write_end = self._open_pipe()
                    stage_input = ctx.input_fd if read_fd is None else read_fd
                    try:
                        self.execute(node.left, stage_ctx.derive(input_fd=stage_input, output_fd=write_end))
                    finally:
                        os.close(write_end)
                        if read_fd is not None:
                            os.close(read_fd)
                        read_fd = read_end
                    node = node.right
                started = len(jobs)
                status = self.execute(node, stage_ctx.derive(input_fd=read_fd))
                last_job = jobs[-1] if len(jobs) > started else None
            finally:
                if read_fd is not None:
                    os.close(read_fd)
        except BaseException:
            self._settle(jobs, writers, ctx)
            raise
        job_status = self._settle(jobs, writers, ctx, last_job)
        if last_job is not None:
            status = job_status
        return status

    def _settle(
        self,
        jobs: list["Job"],
        writers: list[threading.Thread],
        ctx: ExecContext,
        last_job: "Job | None" = None,
    ) -> int | None:
        """Wait for every started stage; return ``last_job``'s status."""

        status = None
        for job in jobs:
            job_status = self.wait(job, ctx)
            if job is last_job:
                status = job_status
        for writer in writers:
            writer.join()
        return status

    def _eval_command(self, node: Node, ctx: ExecContext) -> int:
        argv = node.argv
        handler = self.interpreter.builtins.get(argv[0])
        if handler is not None:
            return self._run_builtin(handler, argv, ctx)
        try:
            job = self.interpreter.backend.spawn(
                argv,
                stdin=ctx.input_fd,
                stdout=ctx.output_fd,
                stderr=ctx.error_fd,
                background=ctx.background,
            )
        except (CommandNotFound, CommandNotExecutable) as exc:
            self.report(ctx, f"minish: {exc}\n")
            return exc.status
        if ctx.background:
            self.interpreter.track(job)
            return ShellStatus.OK
        if ctx.pending is not None:
            ctx.pending.append(job)
            return ShellStatus.OK
        return self.wait(job, ctx)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def wait(self, job: "Job", ctx: ExecContext) -> int:
        if ctx.capture is not None:
            return ctx.capture.wait(job)
        return job.wait()

    def _run_builtin(self, handler: BuiltinHandler, argv: list[str], ctx: ExecContext) -> int:
        logger.debug("running builtin %s", argv)
        result = handler(argv[1:])
        if result is None:
            result = CommandResult()
        elif isinstance(result, str):
            result = CommandResult(stdout=result)
        self._emit(ctx, ctx.output_fd, result.stdout, sys.stdout)
        self._emit(ctx, ctx.error_fd, result.stderr, sys.stderr)
        return result.exit_code

    def report(self, ctx: ExecContext, message: str) -> None:
        self._emit(ctx, ctx.error_fd, message, sys.stderr)

    def _emit(self, ctx: ExecContext, fd: int | None, text: str, fallback: TextIO) -> None:
        """Write builtin or diagnostic text to ``fd``.

        Capture descriptors feed the session's sink directly. Inside a
        pipeline the write runs on a thread that the pipeline joins.
        """

        if not text:
            return
        if fd is None:
            fallback.write(text)
            fallback.flush()
            return
        data = text.encode("utf-8")
        sink = ctx.capture.sink_for(fd) if ctx.capture is not None else None
        if sink is not None:
            sink.feed(data)
        elif ctx.writers is not None:
            self._write_in_background(fd, data, ctx.writers)
        else:
            self._write(fd, data)

    def _write_in_background(self, fd: int, data: bytes, writers: list[threading.Thread]) -> None:
        # The pipeline closes the stage descriptor once the stage is wired.
        try:
            own_fd = os.dup(fd)
        except OSError as exc:
            raise PipeError(f"dup: {exc.strerror}") from exc
        writer = threading.Thread(
            target=self._write_and_close,
            args=(own_fd, data),
            name="minish-builtin-writer",
            daemon=True,
        )
        writer.start()
        writers.append(writer)

    @classmethod
    def _write_and_close(cls, fd: int, data: bytes) -> None:
        try:
            cls._write(fd, data)
        except BrokenPipeError:
            logger.debug("builtin output reader went away")
        finally:
            os.close(fd)

    @staticmethod
    def _write(fd: int, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]

    @staticmethod
    def _open_pipe() -> tuple[int, int]:
        try:
            return os.pipe()
        except OSError as exc:
            raise PipeError(f"pipe: {exc.strerror}") from exc


__all__ = ["Executor"]
