"""Syntax tree produced by the parser."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .lexer import Token


class NodeKind(Enum):
    CMD = "COMMAND"
    BACKGROUND = "BACKGROUND"
    SEQ = "SEQUENCE"
    REDIR_IN = "REDIRECT_IN"
    REDIR_OUT = "REDIRECT_OUT"
    PIPE = "PIPE"


@dataclass(slots=True)
class Node:
    """One tree node.

    ``CMD`` nodes chain their arguments through ``right``. Redirections keep
    the target filename in ``token`` and the command chain in ``right``.
    ``PIPE``, ``SEQ`` and ``BACKGROUND`` hold one stage or statement in
    ``left`` and the continuation in ``right`` (``None`` after a dangling
    ``&`` or ``;``).
    """

    kind: NodeKind
    token: Token | None = None
    left: Node | None = None
    right: Node | None = None

    @property
    def argv(self) -> list[str]:
        if self.kind is not NodeKind.CMD:
            raise ValueError(f"{self.kind.value} node has no argument list")
        args: list[str] = []
        node: Node | None = self
        while node is not None:
            if node.token is not None:
                args.append(node.token.text)
            node = node.right
        return args


def iter_commands(node: Node | None) -> Iterator[list[str]]:
    """Yield the argument list of every command in the tree, left to right."""

    stack = [node]
    while stack:
        current = stack.pop()
        if current is None:
            continue
        if current.kind is NodeKind.CMD:
            yield current.argv
            continue
        stack.append(current.right)
        stack.append(current.left)


def dump(node: Node | None, level: int = 0) -> str:
    lines: list[str] = []
    stack = [(node, level)]
    while stack:
        current, depth = stack.pop()
        if current is None:
            continue
        indent = "  " * depth
        if current.token is None:
            lines.append(f"{indent}[{current.kind.value}]")
        else:
            lines.append(f"{indent}[{current.token.kind.describe()}({current.kind.value}) {current.token.text}]")
        stack.append((current.right, depth + 1))
        stack.append((current.left, depth + 1))
    return "\n".join(lines)


__all__ = ["Node", "NodeKind", "dump", "iter_commands"]
