"""minish package: embeddable command-line interpreter."""

from .capture import IOConfig
from .exceptions import ShellError, ShellStatus
from .lexer import Token, TokenKind, TokenStream, tokenize
from .nodes import Node, NodeKind, dump, iter_commands
from .parser import Parser, parse
from .shell import CommandResult, Interpreter, interpret, interpret_fmt

__all__ = [
    "interpret",
    "interpret_fmt",
    "Interpreter",
    "IOConfig",
    "CommandResult",
    "ShellError",
    "ShellStatus",
    "Token",
    "TokenKind",
    "TokenStream",
    "tokenize",
    "Node",
    "NodeKind",
    "Parser",
    "parse",
    "dump",
    "iter_commands",
]
