"""Working-directory builtins."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from ..common import CommandResult
from ..registry import BUILTIN_REGISTRY

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from ..core import Interpreter


def _home_directory() -> str:
    return os.environ.get("HOME") or os.path.expanduser("~")


@BUILTIN_REGISTRY.builtin(description="Print working directory")
def pwd(_: "Interpreter", args: list[str]) -> CommandResult:
    if args:
        return CommandResult(stderr="pwd: too many arguments\n")
    return CommandResult(stdout=f"{os.getcwd()}\n")


@BUILTIN_REGISTRY.builtin(description="Change the process working directory")
def cd(_: "Interpreter", args: list[str]) -> CommandResult:
    # A failed cd is reported on stderr and leaves the status at 0.
    if len(args) > 1:
        return CommandResult(stderr="cd: too many arguments\n")
    target = args[0] if args else _home_directory()
    try:
        os.chdir(target)
    except OSError as exc:
        return CommandResult(stderr=f"cd: {target}: {exc.strerror}\n")
    return CommandResult()
