"""Element volume from base-quantity sets and quantity-like property sets."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ifcextract.extraction.properties import pset_name, single_values
from ifcextract.models.record import EntityRecord, as_number
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

PREFERRED_VOLUMES = ("NetVolume", "GrossVolume")

_CASE_SUFFIXES = ("STANDARDCASE", "ELEMENTEDCASE")


def base_quantity_names(element_type: str) -> frozenset[str]:
    """Lower-cased conventional base-quantity set names for *element_type*.

    ``IFCWALLSTANDARDCASE`` also matches the sets written for ``IFCWALL``.
    """
    bare = element_type.upper().removeprefix("IFC")
    stems = {bare}
    for suffix in _CASE_SUFFIXES:
        if bare.endswith(suffix) and len(bare) > len(suffix):
            stems.add(bare[: -len(suffix)])

    names = {"basequantities"}
    for stem in stems:
        stem = stem.lower()
        names.update({
            f"qto_{stem}basequantities",
            f"{stem}basequantities",
            f"qto_{stem}quantities",
        })
    return frozenset(names)


@dataclass(frozen=True)
class VolumeContext:
    """What a volume strategy may look at for one element."""

    store: EntityStore
    element: EntityRecord
    psets: tuple[EntityRecord, ...]


VolumeStrategy = Callable[[VolumeContext], float | None]


def from_base_quantities(ctx: VolumeContext) -> float | None:
    """NetVolume, else GrossVolume, of a conventionally named quantity set."""
    names = base_quantity_names(ctx.element.type)
    for qset in ctx.psets:
        if qset.type != "IFCELEMENTQUANTITY" or pset_name(qset).lower() not in names:
            continue
        values = {}
        for name, value in single_values(qset, ctx.store):
            number = as_number(value)
            if number is not None:
                values.setdefault(name, number)
        for preferred in PREFERRED_VOLUMES:
            if preferred in values:
                return float(values[preferred])
    return None


def from_quantity_property_sets(ctx: VolumeContext) -> float | None:
    """Any ``*volume*`` property of a set whose name mentions quantities."""
    for pset in ctx.psets:
        if pset.type != "IFCPROPERTYSET":
            continue
        name = pset_name(pset)
        if "Quantity" not in name and "BaseQuantities" not in name:
            continue
        for prop_name, value in single_values(pset, ctx.store):
            if "volume" not in prop_name.lower():
                continue
            number = as_number(value)
            if number is not None:
                return float(number)
    return None


VOLUME_STRATEGIES: tuple[VolumeStrategy, ...] = (
    from_base_quantities,
    from_quantity_property_sets,
)


def resolve_volume(
    ctx: VolumeContext,
    strategies: tuple[VolumeStrategy, ...] = VOLUME_STRATEGIES,
) -> float | None:
    """Raw element volume in file units, or *None* when nothing carries one."""
    for strategy in strategies:
        value = strategy(ctx)
        if value is not None:
            logger.debug("#%d: volume %s via %s", ctx.element.id, value, strategy.__name__)
            return value
    return None
