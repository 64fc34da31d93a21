"""Shared shell types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import threading

    from ..process import CaptureSession, Job
    from .core import Interpreter


@dataclass(slots=True)
class CommandResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass(frozen=True, slots=True)
class ExecContext:
    """Descriptor wiring and mode for one step of the tree walk.

    ``None`` descriptors inherit the host's standard streams. ``pending``
    is set while a pipeline is being wired: commands append their jobs to it
    instead of waiting, and the pipeline waits once every stage runs.
    ``writers`` collects the threads feeding builtin output into stage pipes.
    """

    input_fd: int | None = None
    output_fd: int | None = None
    error_fd: int | None = None
    background: bool = False
    capture: CaptureSession | None = None
    pending: list[Job] | None = None
    writers: list[threading.Thread] | None = None

    def derive(self, **changes: object) -> ExecContext:
        return replace(self, **changes)


BuiltinHandler = Callable[[list[str]], CommandResult | str | None]
ShellBuiltin = Callable[["Interpreter", list[str]], CommandResult | str | None]


__all__ = ["BuiltinHandler", "CommandResult", "ExecContext", "ShellBuiltin"]
