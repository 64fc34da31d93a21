"""Exception hierarchy and status codes for the interpreter."""

from __future__ import annotations

from enum import IntEnum


class ShellStatus(IntEnum):
    """Library-level return codes. Non-negative values are child exit codes."""

    OK = 0
    GENERIC = -1
    TOKENIZE = -2
    EVAL = -3
    PIPE = -4
    FORK = -5
    READ = -6


class ShellError(Exception):
    """Base error; ``code`` is the status returned to the caller."""

    code: ShellStatus = ShellStatus.GENERIC


class TokenizeError(ShellError):
    code = ShellStatus.TOKENIZE

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f"'{message}' at byte {offset}")
        self.message = message
        self.offset = offset


class ParseError(ShellError):
    code = ShellStatus.EVAL

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f"'{message}' at byte {offset}")
        self.message = message
        self.offset = offset


class TreeError(ShellError):
    """Raised when an executed tree does not have the shape the parser builds."""

    code = ShellStatus.EVAL


class RedirectError(ShellError):
    """Raised when a redirection target cannot be opened."""

    code = ShellStatus.GENERIC


class PipeError(ShellError):
    code = ShellStatus.PIPE


class SpawnError(ShellError):
    code = ShellStatus.FORK


class CommandNotFound(SpawnError):
    """The program could not be located; reported like a failed exec."""

    status = 127


class CommandNotExecutable(SpawnError):
    status = 126


class ReadError(ShellError):
    code = ShellStatus.READ


__all__ = [
    "ShellStatus",
    "ShellError",
    "TokenizeError",
    "ParseError",
    "TreeError",
    "RedirectError",
    "PipeError",
    "SpawnError",
    "CommandNotFound",
    "CommandNotExecutable",
    "ReadError",
]
