"""Core Interpreter implementation and the module-level entry points."""

from __future__ import annotations

import logging
import threading
import time

from ..capture import IOConfig
from ..exceptions import ParseError, ReadError, ShellError, ShellStatus, TokenizeError
from ..lexer import tokenize
from ..parser import Parser
from ..process import Job, ProcessBackend, default_backend
from .common import BuiltinHandler, CommandResult, ExecContext, ShellBuiltin
from .executor import Executor
from .registry import BUILTIN_REGISTRY

logger = logging.getLogger(__name__)

# Seconds between checks of the background job table.
REAP_INTERVAL = 0.05


class Interpreter:
    """Runs single command lines against the host's processes and descriptors.

    ``exit`` and ``cd`` act on the whole host process: ``exit`` raises
    ``SystemExit`` and ``cd`` changes the process working directory.
    """

    def __init__(
        self,
        *,
        backend: ProcessBackend | None = None,
        builtins: bool = True,
    ) -> None:
        self.backend = backend or default_backend()
        self.builtins: dict[str, BuiltinHandler] = {}
        self.builtin_docs: dict[str, str] = {}
        self.executor = Executor(self)
        self._jobs: list[Job] = []
        self._jobs_lock = threading.Lock()
        self._reaper: threading.Thread | None = None
        if builtins:
            self._register_builtin_commands()

    # ------------------------------------------------------------------
    # Builtin registration
    # ------------------------------------------------------------------
    def register_builtin(
        self,
        name: str,
        handler: BuiltinHandler,
        *,
        description: str = "",
    ) -> None:
        self.builtins[name] = handler
        if description:
            self.builtin_docs[name] = description

    def available_builtins(self) -> list[str]:
        return sorted(self.builtins)

    def _bind_registered_handler(self, func: ShellBuiltin) -> BuiltinHandler:
        def bound(args: list[str]) -> CommandResult | str | None:
            return func(self, args)

        return bound

    def _register_builtin_commands(self) -> None:
        # Import builtin modules for their side effects (registration)
        from . import commands  # noqa: F401

        for spec in BUILTIN_REGISTRY:
            self.register_builtin(
                spec.name,
                self._bind_registered_handler(spec.handler),
                description=spec.description,
            )

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------
    def track(self, job: Job) -> None:
        logger.debug("tracking background job %d: %s", job.pid, job.argv)
        with self._jobs_lock:
            self._jobs.append(job)
            if self._reaper is None:
                self._reaper = threading.Thread(target=self._reap_loop, name="minish-job-reaper", daemon=True)
                self._reaper.start()

    def _reap_loop(self) -> None:
        # Runs while background jobs are outstanding; track() restarts it.
        while True:
            self.reap_jobs()
            with self._jobs_lock:
                if not self._jobs:
                    self._reaper = None
                    return
            time.sleep(REAP_INTERVAL)

    def reap_jobs(self) -> list[Job]:
        """Collect finished background jobs and drop them from the table."""

        with self._jobs_lock:
            finished = [job for job in self._jobs if job.poll() is not None]
            self._jobs = [job for job in self._jobs if job.status is None]
        for job in finished:
            logger.debug("background job %d exited with %d", job.pid, job.status)
        return finished

    @property
    def jobs(self) -> list[Job]:
        self.reap_jobs()
        with self._jobs_lock:
            return list(self._jobs)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def interpret(self, command: str | bytes | None, io: IOConfig | None = None) -> int:
        """Run ``command``; return the last child's status or a negative ``ShellStatus``.

        Without ``io`` children inherit the host's standard streams. With
        ``io`` their output is captured into it or streamed to its callbacks.
        """

        if command is None:
            return int(ShellStatus.GENERIC)
        self.reap_jobs()
        if io is None:
            return self._run(command, ExecContext())
        try:
            session = self.backend.open_capture(io)
        except ShellError as exc:
            logger.warning("capture setup failed: %s", exc)
            return int(exc.code)
        try:
            with session:
                ctx = ExecContext(
                    input_fd=session.stdin_fd,
                    output_fd=session.stdout_fd,
                    error_fd=session.stderr_fd,
                    capture=session,
                )
                status = self._run(command, ctx)
        except ReadError as exc:
            logger.warning("capture failed: %s", exc)
            return int(exc.code)
        return status

    def interpret_fmt(self, template: str, *args: object, io: IOConfig | None = None, **kwargs: object) -> int:
        return self.interpret(template.format(*args, **kwargs), io)

    def _run(self, command: str | bytes, ctx: ExecContext) -> int:
        stream = tokenize(command)
        if stream.error is not None:
            error = TokenizeError(stream.error.message or "tokenize failed", stream.error.offset)
            self.executor.report(ctx, f"minish: error: {error}\n")
            return int(error.code)
        try:
            tree = Parser(stream.tokens).parse()
        except ParseError as exc:
            self.executor.report(ctx, f"minish: error: {exc}\n")
            return int(exc.code)
        return int(self.executor.execute(tree, ctx))


_DEFAULT_INTERPRETER: Interpreter | None = None
_DEFAULT_LOCK = threading.Lock()


def default_interpreter() -> Interpreter:
    global _DEFAULT_INTERPRETER
    with _DEFAULT_LOCK:
        if _DEFAULT_INTERPRETER is None:
            _DEFAULT_INTERPRETER = Interpreter()
        return _DEFAULT_INTERPRETER


def interpret(command: str | bytes | None, io: IOConfig | None = None) -> int:
    return default_interpreter().interpret(command, io)


def interpret_fmt(template: str, *args: object, io: IOConfig | None = None, **kwargs: object) -> int:
    """Format ``template`` with ``str.format`` and run the result."""

    return default_interpreter().interpret_fmt(template, *args, io=io, **kwargs)


__all__ = ["Interpreter", "default_interpreter", "interpret", "interpret_fmt"]
