"""
Tokenizer for filter expressions.

The tokenizer is permissive: it never raises. Unterminated literals and stray
characters come out as INVALID tokens and bare words as IDENT tokens; the
parser is the one that rejects them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types for the filter tokenizer."""

    FIELD = auto()  # [Name]
    STRING = auto()  # 'text'
    NUMBER = auto()  # 12 or 12.5
    KEYWORD = auto()  # like, in, between, and, is null, not in, ...
    SYMBOL = auto()  # || && == = != <= >= < > + - * / !
    PUNCT = auto()  # ( ) { } ,
    NULL = auto()  # NULL
    IDENT = auto()  # Bare word
    INVALID = auto()  # Unterminated literal or unknown character
    EOF = auto()  # End of input


@dataclass(frozen=True, slots=True)
class Token:
    """A token from the filter string."""

    type: TokenType
    text: str
    pos: int  # Position in original string for error messages

    @property
    def keyword(self) -> str:
        """Lowercased, single-spaced keyword text ('' for non-keywords)."""
        if self.type is not TokenType.KEYWORD:
            return ""
        return " ".join(self.text.lower().split())


# Multi-word operators, longest first so "is not null" wins over "is".
_MULTI_WORD_KEYWORDS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"is\s+not\s+empty\b",
        r"is\s+not\s+null\b",
        r"is\s+empty\b",
        r"is\s+null\b",
        r"not\s+between\b",
        r"not\s+like\b",
        r"not\s+in\b",
    )
)

KEYWORDS = frozenset(["like", "in", "between", "and", "is", "not", "empty"])

_WORD = re.compile(r"\w+")
_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]+)?")

_TWO_CHAR_SYMBOLS = ("||", "&&", "==", "!=", "<=", ">=")
_ONE_CHAR_SYMBOLS = "=<>+-*/!"
_PUNCTUATION = "(){},"


class _Tokenizer:
    """Left-to-right scanner over one expression string."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.length = len(text)

    def _skip_whitespace(self) -> None:
        while self.pos < self.length and self.text[self.pos].isspace():
            self.pos += 1

    def _emit(self, tokens: list[Token], token_type: TokenType, end: int) -> None:
        tokens.append(Token(token_type, self.text[self.pos : end], self.pos))
        self.pos = end

    def _read_delimited(self, tokens: list[Token], token_type: TokenType, closing: str) -> None:
        """Read a [field] or 'string'; an unterminated span becomes INVALID."""
        end = self.text.find(closing, self.pos + 1)
        if end == -1:
            self._emit(tokens, TokenType.INVALID, self.length)
        else:
            self._emit(tokens, token_type, end + 1)

    def _read_word(self, tokens: list[Token]) -> None:
        for pattern in _MULTI_WORD_KEYWORDS:
            match = pattern.match(self.text, self.pos)
            if match:
                self._emit(tokens, TokenType.KEYWORD, match.end())
                return

        match = _WORD.match(self.text, self.pos)
        if match is None:
            self._emit(tokens, TokenType.INVALID, self.pos + 1)
            return
        word = match.group().lower()
        if word == "null":
            self._emit(tokens, TokenType.NULL, match.end())
        elif word in KEYWORDS:
            self._emit(tokens, TokenType.KEYWORD, match.end())
        else:
            self._emit(tokens, TokenType.IDENT, match.end())

    def tokenize(self) -> list[Token]:
        """Tokenize the entire filter string."""
        tokens: list[Token] = []

        while True:
            self._skip_whitespace()

            if self.pos >= self.length:
                tokens.append(Token(TokenType.EOF, "", self.pos))
                break

            ch = self.text[self.pos]

            if ch == "[":
                self._read_delimited(tokens, TokenType.FIELD, "]")
            elif ch == "'":
                self._read_delimited(tokens, TokenType.STRING, "'")
            elif ch.isdigit() and ch.isascii():
                match = _NUMBER.match(self.text, self.pos)
                if match is None:
                    self._emit(tokens, TokenType.INVALID, self.pos + 1)
                else:
                    self._emit(tokens, TokenType.NUMBER, match.end())
            elif self.text[self.pos : self.pos + 2] in _TWO_CHAR_SYMBOLS:
                self._emit(tokens, TokenType.SYMBOL, self.pos + 2)
            elif ch in _ONE_CHAR_SYMBOLS:
                self._emit(tokens, TokenType.SYMBOL, self.pos + 1)
            elif ch in _PUNCTUATION:
                self._emit(tokens, TokenType.PUNCT, self.pos + 1)
            elif _WORD.match(ch):
                self._read_word(tokens)
            else:
                self._emit(tokens, TokenType.INVALID, self.pos + 1)

        return tokens


def tokenize(text: str) -> list[Token]:
    """
    Split a filter expression into tokens.

    The returned list always ends with an EOF token.

    Examples:
        >>> [t.text for t in tokenize("[Age] >= 18")]
        ['[Age]', '>=', '18', '']
    """
    return _Tokenizer(text).tokenize()
