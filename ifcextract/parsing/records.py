"""Attribute-list parser: one logical record -> EntityRecord.

Consumes the tokens of a single ``#id=TYPE(...);`` record (or a header record
such as ``FILE_SCHEMA(('IFC4'));``) and produces its ordered, possibly nested,
attribute values.  Structural problems raise
:class:`~ifcextract.errors.RecordSyntaxError`.
"""

from __future__ import annotations

import re

from ifcextract.errors import RecordSyntaxError
from ifcextract.models.record import (
    DERIVED,
    NULL,
    AttributeValue,
    EntityRecord,
    EnumValue,
    ListValue,
    NumberValue,
    ReferenceValue,
    StringValue,
    TypedValue,
)
from ifcextract.parsing.tokenizer import Token, TokenType, tokenize

# Guard against pathological nesting blowing the interpreter stack
MAX_NESTING = 64

_INTEGER_RE = re.compile(r"[+-]?\d+")


def decode_step_string(raw: str) -> str:
    """Decode the escapes of an ISO 10303-21 string literal body.

    - ``''``                 -> ``'``
    - ``\\X2\\hhhh...\\X0\\``  -> UTF-16 code units
    - ``\\X4\\hhhhhhhh\\X0\\`` -> UTF-32 code points
    - ``\\X\\hh``             -> one ISO 8859-1 character
    - ``\\S\\c``              -> ``c`` shifted into the upper half of ISO 8859
    - ``\\P?\\``              -> code-page switch, dropped
    - any other backslash escapes the character that follows it
    """
    if "\\" not in raw and "''" not in raw:
        return raw

    out: list[str] = []
    i = 0
    n = len(raw)
    while i < n:
        char = raw[i]
        if char == "'":
            out.append("'")
            i += 2 if raw.startswith("''", i) else 1
            continue
        if char != "\\":
            out.append(char)
            i += 1
            continue

        if raw.startswith("\\X2\\", i) or raw.startswith("\\X4\\", i):
            width = 4 if raw[i + 2] == "2" else 8
            end = raw.find("\\X0\\", i + 4)
            if end == -1:
                out.append(raw[i:])
                break
            hex_str = raw[i + 4:end]
            try:
                chars = [
                    chr(int(hex_str[j:j + width], 16))
                    for j in range(0, len(hex_str) - width + 1, width)
                ]
                out.extend(chars)
            except ValueError:
                out.append(raw[i:end + 4])
            i = end + 4
            continue

        if raw.startswith("\\X\\", i) and i + 5 <= n:
            try:
                out.append(chr(int(raw[i + 3:i + 5], 16)))
                i += 5
                continue
            except ValueError:
                pass

        if raw.startswith("\\S\\", i) and i + 4 <= n:
            out.append(chr(ord(raw[i + 3]) + 128))
            i += 4
            continue

        if raw.startswith("\\P", i) and i + 3 < n and raw[i + 3] == "\\":
            i += 4
            continue

        if i + 1 < n:
            out.append(raw[i + 1])
            i += 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def coerce_number(raw: str) -> int | float:
    """Integer literals stay ints; everything else becomes a float."""
    if _INTEGER_RE.fullmatch(raw):
        return int(raw)
    return float(raw)


class RecordParser:
    """Recursive-descent parser over the tokens of one record."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    # -- token helpers -----------------------------------------------------

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _next(self) -> Token:
        token = self.tokens[self.pos]
        if token.type is not TokenType.EOF:
            self.pos += 1
        return token

    def _expect(self, kind: TokenType, what: str) -> Token:
        token = self._next()
        if token.type is not kind:
            raise self._unexpected(token, what)
        return token

    @staticmethod
    def _unexpected(token: Token, what: str) -> RecordSyntaxError:
        found = "end of record" if token.type is TokenType.EOF else repr(token.value)
        return RecordSyntaxError(f"Expected {what}, found {found}", token.line, token.column)

    # -- grammar -----------------------------------------------------------

    def parse_entity(self) -> EntityRecord:
        """``#id = TYPE(params) ;``"""
        id_token = self._expect(TokenType.REFERENCE, "an entity id")
        self._expect(TokenType.EQUALS, "'='")
        type_name, attributes = self._parse_body()
        self._finish()
        return EntityRecord(
            id=int(id_token.value),
            type=type_name,
            attributes=attributes,
            line=id_token.line,
        )

    def parse_header(self) -> tuple[str, tuple[AttributeValue, ...]]:
        """``KEYWORD(params) ;``"""
        keyword = self._expect(TokenType.KEYWORD, "a header keyword")
        open_paren = self._expect(TokenType.LPAREN, "'('")
        attributes = self._parse_params(open_paren, depth=1)
        self._finish()
        return keyword.value.upper(), attributes

    def _finish(self) -> None:
        token = self._next()
        if token.type is TokenType.SEMICOLON:
            token = self._next()
        if token.type is not TokenType.EOF:
            raise self._unexpected(token, "end of record")

    def _parse_body(self) -> tuple[str, tuple[AttributeValue, ...]]:
        token = self._next()
        if token.type is TokenType.KEYWORD:
            open_paren = self._expect(TokenType.LPAREN, "'('")
            return token.value.upper(), self._parse_params(open_paren, depth=1)

        if token.type is TokenType.LPAREN:
            # Complex instance: (PART_A(...) PART_B(...))
            parts: list[TypedValue] = []
            while self._peek().type is TokenType.KEYWORD:
                keyword = self._next()
                open_paren = self._expect(TokenType.LPAREN, "'('")
                params = self._parse_params(open_paren, depth=2)
                parts.append(TypedValue(keyword.value.upper(), ListValue(params)))
            self._expect(TokenType.RPAREN, "')' closing the complex instance")
            if not parts:
                raise RecordSyntaxError("Empty complex instance", token.line, token.column)
            return "+".join(p.type for p in parts), tuple(parts)

        raise self._unexpected(token, "an entity type")

    def _parse_params(self, open_paren: Token, depth: int) -> tuple[AttributeValue, ...]:
        """Parse ``value, value, ... )`` after an opening parenthesis."""
        if depth > MAX_NESTING:
            raise RecordSyntaxError(
                "Attribute list nested too deeply", open_paren.line, open_paren.column
            )
        values: list[AttributeValue] = []
        if self._peek().type is TokenType.RPAREN:
            self._next()
            return ()

        while True:
            values.append(self._parse_value(open_paren, depth))
            token = self._next()
            if token.type is TokenType.COMMA:
                continue
            if token.type is TokenType.RPAREN:
                return tuple(values)
            if token.type in (TokenType.EOF, TokenType.SEMICOLON):
                raise RecordSyntaxError(
                    "Unbalanced parentheses: attribute list opened here is never closed",
                    open_paren.line,
                    open_paren.column,
                )
            raise self._unexpected(token, "',' or ')'")

    def _parse_value(self, open_paren: Token, depth: int) -> AttributeValue:
        token = self._next()
        kind = token.type

        if kind is TokenType.STRING:
            return StringValue(decode_step_string(token.value))
        if kind is TokenType.BINARY:
            return StringValue(token.value)
        if kind is TokenType.NUMBER:
            return NumberValue(coerce_number(token.value))
        if kind is TokenType.ENUM:
            return EnumValue(token.value.upper())
        if kind is TokenType.REFERENCE:
            return ReferenceValue(int(token.value))
        if kind is TokenType.NULL:
            return NULL
        if kind is TokenType.DERIVED:
            return DERIVED
        if kind is TokenType.LPAREN:
            return ListValue(self._parse_params(token, depth + 1))
        if kind is TokenType.KEYWORD:
            inner_open = self._expect(TokenType.LPAREN, f"'(' after {token.value}")
            inner = self._parse_params(inner_open, depth + 1)
            if len(inner) == 1:
                return TypedValue(token.value.upper(), inner[0])
            return TypedValue(token.value.upper(), ListValue(inner) if inner else NULL)
        if kind in (TokenType.EOF, TokenType.SEMICOLON):
            raise RecordSyntaxError(
                "Unbalanced parentheses: attribute list opened here is never closed",
                open_paren.line,
                open_paren.column,
            )
        raise self._unexpected(token, "an attribute value")


def parse_entity_record(text: str, line: int = 1, column: int = 1) -> EntityRecord:
    """Parse one ``#id=TYPE(...);`` record starting at *line* and *column*."""
    return RecordParser(tokenize(text, line, column)).parse_entity()


def parse_header_record(
    text: str, line: int = 1, column: int = 1
) -> tuple[str, tuple[AttributeValue, ...]]:
    """Parse one header record such as ``FILE_SCHEMA(('IFC4'));``."""
    return RecordParser(tokenize(text, line, column)).parse_header()


def is_entity_line(text: str) -> bool:
    return text.lstrip().startswith("#")
