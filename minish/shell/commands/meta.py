"""Builtins that act on the interpreter process itself."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..common import CommandResult
from ..registry import BUILTIN_REGISTRY

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from ..core import Interpreter


@BUILTIN_REGISTRY.builtin()
def exit_(_: "Interpreter", args: list[str]) -> CommandResult:
    """Terminate the host process.

    Raises ``SystemExit``; this never returns to the ``interpret`` caller.
    """

    if len(args) > 1:
        return CommandResult(stderr="exit: too many arguments\n")
    status = 0
    if args:
        try:
            status = int(args[0])
        except ValueError:
            return CommandResult(stderr=f"exit: {args[0]}: numeric argument required\n")
    raise SystemExit(status)
