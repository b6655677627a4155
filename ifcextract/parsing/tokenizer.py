"""Record tokenizer: raw STEP text -> lexical tokens.

Lexical errors (unterminated strings and comments, stray characters) raise
:class:`~ifcextract.errors.RecordSyntaxError` carrying the position of the
offending character; the document reader decides whether that is fatal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from ifcextract.errors import RecordSyntaxError


class TokenType(str, Enum):
    """Kinds of lexical token."""

    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    BINARY = "binary"
    ENUM = "enum"
    REFERENCE = "reference"
    NULL = "null"
    DERIVED = "derived"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    EQUALS = "="
    SEMICOLON = ";"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    column: int


_NUMBER_RE = re.compile(r"[+-]?\d+(?:\.\d*)?(?:[eE][+-]?\d+)?")
_KEYWORD_RE = re.compile(r"!?[A-Za-z_][A-Za-z0-9_]*")
_ENUM_RE = re.compile(r"\.([A-Za-z_][A-Za-z0-9_]*)\.")
_REFERENCE_RE = re.compile(r"#(\d+)")

_PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    "=": TokenType.EQUALS,
    ";": TokenType.SEMICOLON,
    "$": TokenType.NULL,
    "*": TokenType.DERIVED,
}


class Tokenizer:
    """Split STEP text into :class:`Token` objects.

    *line* and *column* give the position of the first character of *text*
    in the enclosing document so that token positions are absolute.
    """

    def __init__(self, text: str, line: int = 1, column: int = 1) -> None:
        self.text = text
        self.pos = 0
        self.line = line
        self.column = column

    def _error(self, message: str) -> RecordSyntaxError:
        return RecordSyntaxError(message, self.line, self.column)

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _skip_blank(self) -> None:
        """Skip whitespace and ``/* ... */`` comments."""
        text = self.text
        while self.pos < len(text):
            if text[self.pos].isspace():
                self._advance()
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self._error("Unterminated comment")
                self._advance(end + 2 - self.pos)
            else:
                return

    def _read_string(self) -> Token:
        line, column = self.line, self.column
        text = self.text
        self._advance()  # opening quote
        start = self.pos
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\" and self.pos + 1 < len(text):
                self._advance(2)
            elif char == "'":
                if text.startswith("''", self.pos):
                    self._advance(2)
                    continue
                raw = text[start:self.pos]
                self._advance()
                return Token(TokenType.STRING, raw, line, column)
            else:
                self._advance()
        raise RecordSyntaxError("Unterminated string literal", line, column)

    def _read_binary(self) -> Token:
        line, column = self.line, self.column
        end = self.text.find('"', self.pos + 1)
        if end == -1:
            raise RecordSyntaxError("Unterminated binary literal", line, column)
        raw = self.text[self.pos + 1:end]
        self._advance(end + 1 - self.pos)
        return Token(TokenType.BINARY, raw, line, column)

    def _match(self, pattern: re.Pattern[str], kind: TokenType, group: int = 0) -> Token | None:
        match = pattern.match(self.text, self.pos)
        if match is None:
            return None
        token = Token(kind, match.group(group), self.line, self.column)
        self._advance(match.end() - self.pos)
        return token

    def next_token(self) -> Token:
        self._skip_blank()
        if self.pos >= len(self.text):
            return Token(TokenType.EOF, "", self.line, self.column)

        char = self.text[self.pos]

        if char == "'":
            return self._read_string()
        if char == '"':
            return self._read_binary()
        if char == "#":
            token = self._match(_REFERENCE_RE, TokenType.REFERENCE, group=1)
            if token is None:
                raise self._error("Expected an entity id after '#'")
            return token
        if char == ".":
            token = self._match(_ENUM_RE, TokenType.ENUM, group=1)
            if token is None:
                raise self._error("Malformed enumeration")
            return token
        if char.isdigit() or char in "+-":
            token = self._match(_NUMBER_RE, TokenType.NUMBER)
            if token is None:
                raise self._error(f"Unexpected character: {char!r}")
            return token
        if char.isalpha() or char in "_!":
            token = self._match(_KEYWORD_RE, TokenType.KEYWORD)
            if token is not None:
                return token
        if char in _PUNCTUATION:
            token = Token(_PUNCTUATION[char], char, self.line, self.column)
            self._advance()
            return token

        raise self._error(f"Unexpected character: {char!r}")

    def tokenize(self) -> list[Token]:
        """Return every token of the text, terminated by an EOF token."""
        tokens: list[Token] = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type is TokenType.EOF:
                return tokens


def tokenize(text: str, line: int = 1, column: int = 1) -> list[Token]:
    """Convenience wrapper around :meth:`Tokenizer.tokenize`."""
    return Tokenizer(text, line, column).tokenize()
