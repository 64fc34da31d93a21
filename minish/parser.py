"""Recursive-descent parser for minish command lines.

Grammar (right associative)::

    full_command := pipeline ( ('&' | ';') full_command? )?
    pipeline     := command ( '|' pipeline )?
    command      := word_list ( ('>' | '<') ATOM )?
    word_list    := ATOM word_list?

A dangling ``&`` or ``;`` is only accepted as the final token.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .exceptions import ParseError
from .lexer import Token, TokenKind, TokenStream
from .nodes import Node, NodeKind, dump

logger = logging.getLogger(__name__)

_SEPARATORS = {
    TokenKind.AMPERSAND: NodeKind.BACKGROUND,
    TokenKind.SEMICOLON: NodeKind.SEQ,
}
_REDIRECTIONS = {
    TokenKind.GREATER: NodeKind.REDIR_OUT,
    TokenKind.LESSER: NodeKind.REDIR_IN,
}


class Parser:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = [token for token in tokens if token.kind is not TokenKind.EOL]
        self.cursor = 0

    # ------------------------------------------------------------------
    # Cursor helpers
    # ------------------------------------------------------------------
    def _peek(self) -> Token | None:
        return self.tokens[self.cursor] if self.cursor < len(self.tokens) else None

    def _check(self, kind: TokenKind) -> bool:
        token = self._peek()
        return token is not None and token.kind is kind

    def _consume(self) -> Token:
        token = self.tokens[self.cursor]
        self.cursor += 1
        return token

    def _end_offset(self) -> int:
        if not self.tokens:
            return 0
        return len(self.tokens[-1].source)

    def _fail(self, message: str) -> ParseError:
        token = self._peek()
        offset = token.start if token is not None else self._end_offset()
        return ParseError(message, offset)

    def _expect_atom(self, context: str) -> Token:
        if not self._check(TokenKind.ATOM):
            token = self._peek()
            found = token.kind.describe() if token is not None else "END"
            raise self._fail(f"expected word {context}, found {found}")
        return self._consume()

    # ------------------------------------------------------------------
    # Grammar rules
    # ------------------------------------------------------------------
    def parse(self) -> Node:
        if not self.tokens:
            raise ParseError("empty command", 0)
        root = self._full_command()
        if self.cursor != len(self.tokens):
            raise self._fail("trailing input")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("parsed tree:\n%s", dump(root))
        return root

    def _full_command(self) -> Node:
        # Each separator node's ``right`` holds the rest of the line.
        root: Node | None = None
        tail: Node | None = None
        while True:
            left = self._pipeline()
            token = self._peek()
            if token is None or token.kind not in _SEPARATORS:
                if tail is None:
                    return left
                tail.right = left
                return root
            self._consume()
            node = Node(_SEPARATORS[token.kind], left=left)
            if tail is None:
                root = node
            else:
                tail.right = node
            tail = node
            if self._peek() is None:
                return root

    def _pipeline(self) -> Node:
        root: Node | None = None
        tail: Node | None = None
        while True:
            left = self._command()
            if not self._check(TokenKind.PIPE):
                if tail is None:
                    return left
                tail.right = left
                return root
            self._consume()
            node = Node(NodeKind.PIPE, left=left)
            if tail is None:
                root = node
            else:
                tail.right = node
            tail = node

    def _command(self) -> Node:
        words = self._word_list()
        token = self._peek()
        if token is None or token.kind not in _REDIRECTIONS:
            return words
        self._consume()
        target = self._expect_atom(f"after '{token.kind.value}'")
        return Node(_REDIRECTIONS[token.kind], token=target, right=words)

    def _word_list(self) -> Node:
        head = Node(NodeKind.CMD, token=self._expect_atom("to start a command"))
        tail = head
        while self._check(TokenKind.ATOM):
            tail.right = Node(NodeKind.CMD, token=self._consume())
            tail = tail.right
        return head


def parse(tokens: Sequence[Token] | TokenStream) -> Node | None:
    """Build a tree from ``tokens``; ``None`` signals a syntax error."""

    if isinstance(tokens, TokenStream):
        if tokens.error is not None:
            return None
        tokens = tokens.tokens
    try:
        return Parser(tokens).parse()
    except ParseError as exc:
        logger.debug("parse failed: %s", exc)
        return None


__all__ = ["Parser", "parse"]
