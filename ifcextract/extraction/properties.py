"""Property sets (Psets) and quantity sets attached to entities."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from ifcextract.config import ATTR_NAME
from ifcextract.models.record import (
    AttributeValue,
    EntityRecord,
    EnumValue,
    ListValue,
    NumberValue,
    ReferenceValue,
    StringValue,
    as_bool,
    unwrap,
)
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

# IfcPropertySet(GlobalId, OwnerHistory, Name, Description, HasProperties)
_PSET_PROPERTIES = 4
# IfcElementQuantity(GlobalId, OwnerHistory, Name, Description, MethodOfMeasurement, Quantities)
_QSET_QUANTITIES = 5
# IfcMaterialProperties(Name, Description, Properties, Material)
_MATERIAL_PROPERTIES = 2
# IfcPropertySingleValue(Name, Description, NominalValue, Unit)
_PROPERTY_VALUE = 2
# IfcPropertyEnumeratedValue(Name, Description, EnumerationValues, EnumerationReference)
_PROPERTY_ENUM_VALUES = 2
# IfcQuantityXxx(Name, Description, Unit, Value, ...)
_QUANTITY_VALUE = 3
# IfcTypeObject(GlobalId, OwnerHistory, Name, Description, ApplicableOccurrence, HasPropertySets)
_TYPE_PROPERTY_SETS = 5

PSET_TYPES = frozenset({"IFCPROPERTYSET", "IFCELEMENTQUANTITY"})

QUANTITY_TYPES = frozenset({
    "IFCQUANTITYLENGTH",
    "IFCQUANTITYAREA",
    "IFCQUANTITYVOLUME",
    "IFCQUANTITYCOUNT",
    "IFCQUANTITYWEIGHT",
    "IFCQUANTITYTIME",
})


def to_python(value: AttributeValue) -> Any:
    """Convert an attribute value into a JSON-safe Python value."""
    value = unwrap(value)
    if isinstance(value, (StringValue, NumberValue)):
        return value.value
    if isinstance(value, EnumValue):
        flag = as_bool(value)
        if flag is not None:
            return flag
        return None if value.value == "U" else value.value
    if isinstance(value, ReferenceValue):
        return str(value)
    if isinstance(value, ListValue):
        return [to_python(item) for item in value.items]
    return None


def single_values(pset: EntityRecord, store: EntityStore) -> Iterator[tuple[str, AttributeValue]]:
    """Yield ``(name, value)`` for the simple properties / quantities of *pset*."""
    if pset.type == "IFCPROPERTYSET":
        members = store.resolve_all(pset.references(_PSET_PROPERTIES))
    elif pset.type == "IFCELEMENTQUANTITY":
        members = store.resolve_all(pset.references(_QSET_QUANTITIES))
    elif pset.type == "IFCMATERIALPROPERTIES":
        members = store.resolve_all(pset.references(_MATERIAL_PROPERTIES))
    else:
        return

    for member in members:
        name = member.text(0)
        if name is None:
            continue
        if member.type == "IFCPROPERTYSINGLEVALUE":
            yield name, member.attr(_PROPERTY_VALUE)
        elif member.type == "IFCPROPERTYENUMERATEDVALUE":
            yield name, member.attr(_PROPERTY_ENUM_VALUES)
        elif member.type in QUANTITY_TYPES:
            yield name, member.attr(_QUANTITY_VALUE)


def find_property(psets: Iterable[EntityRecord], store: EntityStore, name: str) -> AttributeValue | None:
    """Value of the first property called *name* across *psets*."""
    for pset in psets:
        for prop_name, value in single_values(pset, store):
            if prop_name == name:
                return value
    return None


def pset_name(pset: EntityRecord) -> str:
    if pset.type == "IFCMATERIALPROPERTIES":
        return pset.text(0) or ""
    return pset.text(ATTR_NAME) or ""


def type_property_sets(type_object: EntityRecord | None, store: EntityStore) -> list[EntityRecord]:
    """Property sets declared on a type object (``HasPropertySets``)."""
    if type_object is None:
        return []
    return store.resolve_all(type_object.references(_TYPE_PROPERTY_SETS))


def collect_psets(psets: Iterable[EntityRecord], store: EntityStore) -> dict[str, dict[str, Any]]:
    """Return property sets keyed by Pset name, each a flat name -> value dict.

    A later set with the same name is merged into the earlier one, later
    values winning.
    """
    result: dict[str, dict[str, Any]] = {}
    for pset in psets:
        if pset.type not in PSET_TYPES:
            continue
        values = {name: to_python(value) for name, value in single_values(pset, store)}
        result.setdefault(pset_name(pset), {}).update(values)
    return result


def flatten_psets(psets: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Flatten nested Pset dicts into ``"Pset_WallCommon.IsExternal"`` keys."""
    flat: dict[str, Any] = {}
    for name, props in psets.items():
        for key, value in props.items():
            flat[f"{name}.{key}"] = value
    return flat


def find_flag(psets: dict[str, dict[str, Any]], name: str) -> bool:
    """*True* when any property set carries *name* set to true."""
    return any(props.get(name) is True for props in psets.values())
