"""Tokenizer for minish command lines.

Tokens never copy text out of the command: each one records a byte span into
the UTF-8 encoded source, which every token of a stream shares.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    ERROR = "error"
    EOL = "eol"
    ATOM = "atom"
    PIPE = "|"
    AMPERSAND = "&"
    GREATER = ">"
    LESSER = "<"
    SEMICOLON = ";"

    def describe(self) -> str:
        return "END" if self is TokenKind.EOL else self.name


_WHITESPACE = frozenset(b" \t\v\r\n\f")
_QUOTES = frozenset(b"'\"")
_PUNCTUATION = {
    ord("|"): TokenKind.PIPE,
    ord("&"): TokenKind.AMPERSAND,
    ord(">"): TokenKind.GREATER,
    ord("<"): TokenKind.LESSER,
    ord(";"): TokenKind.SEMICOLON,
}
_ATOM_STOP = _WHITESPACE | frozenset(_PUNCTUATION) | {0}


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    start: int
    end: int
    source: bytes
    message: str | None = None

    @property
    def value(self) -> bytes:
        return self.source[self.start : self.end]

    @property
    def text(self) -> str:
        return self.value.decode("utf-8", errors="surrogateescape")

    @property
    def offset(self) -> int:
        return self.start

    def __repr__(self) -> str:
        if self.kind is TokenKind.ERROR:
            return f"Token(ERROR, {self.message!r} at {self.start})"
        return f"Token({self.kind.describe()}, {self.start}:{self.end}, {self.text!r})"


class TokenStream(NamedTuple):
    tokens: list[Token]
    error: Token | None = None


def _char_width(lead: int) -> int:
    if lead < 0x80:
        return 1
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


class Lexer:
    """Single-pass iterator over the tokens of one command line.

    Iteration ends after exactly one ``EOL`` or ``ERROR`` token. The lexer
    cannot be rewound; build a new one to scan the input again.
    """

    def __init__(self, command: str | bytes) -> None:
        if isinstance(command, str):
            command = command.encode("utf-8", errors="surrogateescape")
        self.source = bytes(command)
        self.pos = 0
        self._finished = False

    def __iter__(self) -> Iterator[Token]:
        return self

    def __next__(self) -> Token:
        if self._finished:
            raise StopIteration
        token = self._read_token()
        if token.kind in (TokenKind.EOL, TokenKind.ERROR):
            self._finished = True
        return token

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def _token(self, kind: TokenKind, start: int, end: int, message: str | None = None) -> Token:
        return Token(kind, start, end, self.source, message)

    def _advance(self) -> None:
        # Only continuation bytes (0x80-0xBF) belong to the current character.
        end = min(self.pos + _char_width(self.source[self.pos]), len(self.source))
        self.pos += 1
        while self.pos < end and 0x80 <= self.source[self.pos] <= 0xBF:
            self.pos += 1

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self.source[self.pos] in _WHITESPACE:
            self.pos += 1

    def _read_token(self) -> Token:
        self._skip_whitespace()
        if self._at_end():
            return self._token(TokenKind.EOL, self.pos, self.pos)
        current = self.source[self.pos]
        if current in _QUOTES:
            return self._read_quoted(current)
        kind = _PUNCTUATION.get(current)
        if kind is not None:
            start = self.pos
            self.pos += 1
            return self._token(kind, start, self.pos)
        if current == 0:
            return self._token(TokenKind.ERROR, self.pos, self.pos, "unexpected character")
        return self._read_atom()

    def _read_atom(self) -> Token:
        start = self.pos
        while not self._at_end() and self.source[self.pos] not in _ATOM_STOP:
            self._advance()
        return self._token(TokenKind.ATOM, start, self.pos)

    def _read_quoted(self, quote: int) -> Token:
        self.pos += 1
        start = self.pos
        while not self._at_end():
            if self.source[self.pos] == quote:
                token = self._token(TokenKind.ATOM, start, self.pos)
                self.pos += 1
                return token
            self._advance()
        return self._token(TokenKind.ERROR, self.pos, self.pos, "unterminated quote")


def tokenize(command: str | bytes) -> TokenStream:
    """Scan ``command`` into its tokens.

    The terminal ``EOL`` is not part of ``tokens``. When scanning fails the
    ``ERROR`` token is returned as ``error`` alongside the tokens read so far.
    """

    tokens: list[Token] = []
    for token in Lexer(command):
        if token.kind is TokenKind.EOL:
            break
        if token.kind is TokenKind.ERROR:
            logger.debug("tokenize failed: %s at byte %d", token.message, token.offset)
            return TokenStream(tokens, token)
        tokens.append(token)
    logger.debug("tokenized %d tokens", len(tokens))
    return TokenStream(tokens)


__all__ = ["Lexer", "Token", "TokenKind", "TokenStream", "tokenize"]
