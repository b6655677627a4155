"""Constituent weights: an ordered chain of thickness strategies.

IFC4 constituent sets carry no thickness of their own, so the weight of each
constituent is looked up in the places producers tend to put it.  Every
strategy is a pure function ``(ConstituentContext) -> float | None``; they are
tried in :data:`THICKNESS_STRATEGIES` order and the first positive result wins.
When none yields a value the constituent's weight is ``0.0``.

Weights are raw values in file units; converting them is the caller's job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ifcextract.config import PROXIMITY_WINDOW, THICKNESS_NAMES, THICKNESS_PROPERTY_NAMES
from ifcextract.extraction.properties import find_property
from ifcextract.extraction.relationships import RelationshipIndex
from ifcextract.models.record import EntityRecord, as_number
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

# IfcPhysicalComplexQuantity(Name, Description, HasQuantities, Discrimination, Quality, Usage)
_COMPLEX_QUANTITIES = 2
# IfcQuantityLength(Name, Description, Unit, LengthValue, Formula)
_LENGTH_VALUE = 3
# IfcMaterialProperties(Name, Description, Properties, Material)
_PROPERTIES_MATERIAL = 3
# IfcMaterialLayerSet(MaterialLayers, LayerSetName, Description)
_LAYER_SET_LAYERS = 0
# IfcMaterialLayer(Material, LayerThickness, IsVentilated, Name, ...)
_LAYER_MATERIAL = 0
_LAYER_THICKNESS = 1

_MAX_COMPLEX_DEPTH = 8


@dataclass(frozen=True)
class ConstituentContext:
    """What a thickness strategy may look at for one constituent."""

    store: EntityStore
    index: RelationshipIndex
    constituent: EntityRecord
    name: str | None
    material: EntityRecord | None
    material_name: str | None


ThicknessStrategy = Callable[[ConstituentContext], float | None]


def _length_value(quantity: EntityRecord) -> float | None:
    """Value of a length quantity carrying one of the thickness names."""
    if quantity.type != "IFCQUANTITYLENGTH" or quantity.text(0) not in THICKNESS_NAMES:
        return None
    value = quantity.number(_LENGTH_VALUE)
    return float(value) if value is not None else None


def _nested_lengths(complex_quantity: EntityRecord, store: EntityStore, depth: int = 0) -> Iterator[float]:
    for quantity in store.resolve_all(complex_quantity.references(_COMPLEX_QUANTITIES)):
        if quantity.type == "IFCPHYSICALCOMPLEXQUANTITY" and depth < _MAX_COMPLEX_DEPTH:
            yield from _nested_lengths(quantity, store, depth + 1)
            continue
        value = _length_value(quantity)
        if value is not None:
            yield value


def from_complex_quantity(ctx: ConstituentContext) -> float | None:
    """A physical complex quantity named after the constituent."""
    if not ctx.name:
        return None
    for complex_quantity in ctx.store.by_type("IFCPHYSICALCOMPLEXQUANTITY"):
        if complex_quantity.text(0) != ctx.name:
            continue
        for value in _nested_lengths(complex_quantity, ctx.store):
            if value > 0:
                return value
    return None


def from_preceding_quantity(ctx: ConstituentContext) -> float | None:
    """A length quantity written just before the constituent.

    Some exporters emit the thickness quantity immediately ahead of the
    constituent without linking the two.
    """
    first = ctx.constituent.id - PROXIMITY_WINDOW
    for entity_id in range(first, ctx.constituent.id):
        record = ctx.store.get(entity_id)
        if record is None:
            continue
        value = _length_value(record)
        if value is not None and value > 0:
            return value
    return None


def _constituent_psets(ctx: ConstituentContext) -> list[EntityRecord]:
    psets = ctx.store.resolve_all(ctx.index.property_definitions(ctx.constituent.id))
    if ctx.material is not None:
        for props in ctx.store.by_type("IFCMATERIALPROPERTIES"):
            if props.reference(_PROPERTIES_MATERIAL) == ctx.material.id:
                psets.append(props)
    return psets


def from_property_sets(ctx: ConstituentContext) -> float | None:
    """Thickness properties on the constituent or its material."""
    psets = _constituent_psets(ctx)
    if not psets:
        return None
    for name in THICKNESS_PROPERTY_NAMES:
        value = as_number(find_property(psets, ctx.store, name))
        if value is not None and value > 0:
            return float(value)
    return None


def from_layer_sets(ctx: ConstituentContext) -> float | None:
    """The thickness of any layer made of a material with the same name."""
    if not ctx.material_name:
        return None
    for layer_set in ctx.store.by_type("IFCMATERIALLAYERSET"):
        for layer in ctx.store.resolve_all(layer_set.references(_LAYER_SET_LAYERS)):
            if layer.type != "IFCMATERIALLAYER":
                continue
            material = ctx.store.resolve(layer.attr(_LAYER_MATERIAL))
            if material is None or material.text(0) != ctx.material_name:
                continue
            thickness = layer.number(_LAYER_THICKNESS)
            if thickness is not None and thickness > 0:
                return float(thickness)
    return None


THICKNESS_STRATEGIES: tuple[ThicknessStrategy, ...] = (
    from_complex_quantity,
    from_preceding_quantity,
    from_property_sets,
    from_layer_sets,
)


def resolve_weight(
    ctx: ConstituentContext,
    strategies: tuple[ThicknessStrategy, ...] = THICKNESS_STRATEGIES,
) -> float:
    """Run *strategies* in order and return the first positive weight, else 0.0."""
    for strategy in strategies:
        value = strategy(ctx)
        if value is not None and value > 0:
            logger.debug("#%d: weight %s via %s", ctx.constituent.id, value, strategy.__name__)
            return value
    logger.debug("#%d: no weight found for constituent %r", ctx.constituent.id, ctx.name)
    return 0.0
