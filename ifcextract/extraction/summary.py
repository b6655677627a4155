"""Aggregate maps over extracted elements."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from ifcextract.config import ATTR_NAME, ATTR_STOREY_ELEVATION, STOREY_TYPE, UNKNOWN_STOREY
from ifcextract.extraction.units import UnitScales
from ifcextract.models.element import ExtractedElement, StoreySummary
from ifcextract.parsing.store import EntityStore


def count_by_type(elements: Iterable[ExtractedElement]) -> dict[str, int]:
    return dict(Counter(e.type for e in elements))


def count_by_storey(elements: Iterable[ExtractedElement]) -> dict[str, dict[str, int]]:
    """``{storey name: {element type: count}}``."""
    counts: dict[str, Counter[str]] = {}
    for element in elements:
        counts.setdefault(element.building_storey, Counter())[element.type] += 1
    return {storey: dict(by_type) for storey, by_type in counts.items()}


def material_usage(elements: Iterable[ExtractedElement]) -> dict[str, dict[str, int]]:
    """``{element type: {material description: element count}}``.

    An element counts once per distinct description even when two of its
    facts share one.  Types whose elements carry no material facts are left out.
    """
    usage: dict[str, Counter[str]] = {}
    for element in elements:
        descriptions = {m.description() for m in element.materials}
        if not descriptions:
            continue
        by_material = usage.setdefault(element.type, Counter())
        for description in sorted(descriptions):
            by_material[description] += 1
    return {element_type: dict(counts) for element_type, counts in usage.items()}


def storey_summaries(
    store: EntityStore,
    storey_of: Mapping[int, int | None],
    units: UnitScales | None = None,
) -> list[StoreySummary]:
    """One summary per ``IFCBUILDINGSTOREY`` in file order.

    *storey_of* maps element ids to the id of their storey.
    """
    units = units or UnitScales()
    members: dict[int, list[int]] = {}
    for element_id, storey_id in storey_of.items():
        if storey_id is not None:
            members.setdefault(storey_id, []).append(element_id)

    summaries = []
    for storey in store.by_type(STOREY_TYPE):
        elevation = storey.number(ATTR_STOREY_ELEVATION)
        summaries.append(StoreySummary(
            id=storey.id,
            name=storey.text(ATTR_NAME) or UNKNOWN_STOREY,
            elevation=units.length_text(elevation) if elevation is not None else None,
            element_ids=members.get(storey.id, []),
        ))
    return summaries
