"""EntityRecord and the closed set of attribute values it carries.

Every attribute of a parsed record is exactly one of:

* :class:`StringValue`    - a decoded quoted string
* :class:`NumberValue`    - an integer or real literal
* :class:`NullValue`      - ``$`` (unset) or ``*`` (derived)
* :class:`EnumValue`      - ``.NAME.``
* :class:`ReferenceValue` - ``#123``, kept distinct from plain numbers
* :class:`ListValue`      - a parenthesised, possibly nested, list
* :class:`TypedValue`     - a typed parameter such as ``IFCLABEL('x')``

The accessor functions below unwrap typed parameters, so callers that only
care about the payload never have to match on :class:`TypedValue`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class NumberValue:
    value: int | float


@dataclass(frozen=True)
class NullValue:
    derived: bool = False


@dataclass(frozen=True)
class EnumValue:
    value: str


@dataclass(frozen=True)
class ReferenceValue:
    id: int

    def __str__(self) -> str:
        return f"#{self.id}"


@dataclass(frozen=True)
class ListValue:
    items: tuple[AttributeValue, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True)
class TypedValue:
    type: str
    value: AttributeValue


AttributeValue = Union[
    StringValue,
    NumberValue,
    NullValue,
    EnumValue,
    ReferenceValue,
    ListValue,
    TypedValue,
]

NULL = NullValue()
DERIVED = NullValue(derived=True)


def unwrap(value: AttributeValue) -> AttributeValue:
    """Strip any number of typed-parameter wrappers."""
    while isinstance(value, TypedValue):
        value = value.value
    return value


def as_text(value: AttributeValue) -> str | None:
    value = unwrap(value)
    return value.value if isinstance(value, StringValue) else None


def as_number(value: AttributeValue) -> int | float | None:
    value = unwrap(value)
    return value.value if isinstance(value, NumberValue) else None


def as_enum(value: AttributeValue) -> str | None:
    value = unwrap(value)
    return value.value if isinstance(value, EnumValue) else None


def as_bool(value: AttributeValue) -> bool | None:
    """Interpret a STEP logical (``.T.`` / ``.F.`` / ``.U.``)."""
    token = as_enum(value)
    if token is None:
        return None
    token = token.upper()
    if token in ("T", "TRUE"):
        return True
    if token in ("F", "FALSE"):
        return False
    return None


def as_reference(value: AttributeValue) -> int | None:
    value = unwrap(value)
    return value.id if isinstance(value, ReferenceValue) else None


def as_references(value: AttributeValue) -> list[int]:
    """Return the referenced ids of a list attribute.

    A bare reference is accepted as a one-element list; non-reference items
    are skipped.
    """
    value = unwrap(value)
    if isinstance(value, ReferenceValue):
        return [value.id]
    if isinstance(value, ListValue):
        return [item.id for item in (unwrap(i) for i in value.items) if isinstance(item, ReferenceValue)]
    return []


@dataclass(frozen=True)
class EntityRecord:
    """One parsed ``#id=TYPE(...)`` record.  Immutable once parsed."""

    id: int
    type: str
    attributes: tuple[AttributeValue, ...] = ()
    line: int = 0

    def attr(self, index: int) -> AttributeValue:
        """Return attribute *index*, or the null marker when it is absent."""
        if 0 <= index < len(self.attributes):
            return self.attributes[index]
        return NULL

    def text(self, index: int) -> str | None:
        return as_text(self.attr(index))

    def number(self, index: int) -> int | float | None:
        return as_number(self.attr(index))

    def reference(self, index: int) -> int | None:
        return as_reference(self.attr(index))

    def references(self, index: int) -> list[int]:
        return as_references(self.attr(index))
