"""Project unit scales and conversion into canonical units (metres, cubic metres).

The length unit is taken from the project's ``IFCUNITASSIGNMENT`` when one
exists, else from the first length-unit declaration in the file.  SI prefixes
map to their power of ten; conversion-based units (feet, inches) use their
conversion factor.  Volumes scale with the cube of an SI prefix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ifcextract.config import CANONICAL_DECIMALS, ZERO_VOLUME
from ifcextract.models.record import EntityRecord, as_enum, as_number
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

SI_PREFIX_SCALE: dict[str, float] = {
    "EXA": 1e18,
    "PETA": 1e15,
    "TERA": 1e12,
    "GIGA": 1e9,
    "MEGA": 1e6,
    "KILO": 1e3,
    "HECTO": 1e2,
    "DECA": 1e1,
    "DECI": 1e-1,
    "CENTI": 1e-2,
    "MILLI": 1e-3,
    "MICRO": 1e-6,
    "NANO": 1e-9,
    "PICO": 1e-12,
    "FEMTO": 1e-15,
    "ATTO": 1e-18,
}

_UNIT_TYPES = ("IFCSIUNIT", "IFCCONVERSIONBASEDUNIT")

# IfcSIUnit(Dimensions, UnitType, Prefix, Name)
_SI_UNIT_TYPE = 1
_SI_PREFIX = 2
# IfcConversionBasedUnit(Dimensions, UnitType, Name, ConversionFactor)
_CONVERSION_FACTOR = 3
# IfcMeasureWithUnit(ValueComponent, UnitComponent)
_MEASURE_VALUE = 0
_MEASURE_UNIT = 1


@dataclass(frozen=True)
class UnitScales:
    """Multiplicative factors from file units to canonical units."""

    length: float = 1.0
    volume: float = 1.0

    def length_text(self, raw: float | int | None) -> str:
        return format_canonical(raw, self.length)

    def volume_text(self, raw: float | int | None) -> str:
        return format_canonical(raw, self.volume)


def format_canonical(raw: float | int | None, scale: float = 1.0) -> str:
    """Scale *raw* and format it with the fixed canonical precision."""
    if raw is None:
        return ZERO_VOLUME
    return f"{raw * scale:.{CANONICAL_DECIMALS}f}"


def prefix_scale(prefix: str | None) -> float:
    """Scale for an SI prefix enumeration; no prefix means 1.0."""
    if prefix is None:
        return 1.0
    scale = SI_PREFIX_SCALE.get(prefix.upper())
    if scale is None:
        logger.warning("Unknown SI prefix %r; assuming no prefix", prefix)
        return 1.0
    return scale


def _unit_scale(unit: EntityRecord, store: EntityStore, power: int, depth: int = 0) -> float | None:
    if unit.type == "IFCSIUNIT":
        return prefix_scale(as_enum(unit.attr(_SI_PREFIX))) ** power

    if unit.type == "IFCCONVERSIONBASEDUNIT" and depth < 4:
        measure = store.resolve(unit.attr(_CONVERSION_FACTOR))
        if measure is None:
            return None
        value = as_number(measure.attr(_MEASURE_VALUE))
        base = store.resolve(measure.attr(_MEASURE_UNIT))
        if value is None or base is None:
            return None
        base_scale = _unit_scale(base, store, power, depth + 1)
        return None if base_scale is None else value * base_scale

    return None


def _declared_units(store: EntityStore) -> list[EntityRecord]:
    """Units of the unit assignment, falling back to every unit in the file."""
    for assignment in store.by_type("IFCUNITASSIGNMENT"):
        units = store.resolve_all(assignment.references(0))
        if units:
            return units
    return store.by_type(*_UNIT_TYPES)


def find_unit_scale(store: EntityStore, unit_type: str, power: int = 1) -> float:
    """Scale of the first declared unit of *unit_type* (e.g. ``LENGTHUNIT``)."""
    for unit in _declared_units(store):
        if unit.type not in _UNIT_TYPES:
            continue
        if as_enum(unit.attr(_SI_UNIT_TYPE)) != unit_type:
            continue
        scale = _unit_scale(unit, store, power)
        if scale is not None:
            logger.debug("Using %s scale %s from #%d", unit_type, scale, unit.id)
            return scale
    logger.debug("No %s declared; assuming canonical units", unit_type)
    return 1.0


def find_unit_scales(store: EntityStore) -> UnitScales:
    return UnitScales(
        length=find_unit_scale(store, "LENGTHUNIT"),
        volume=find_unit_scale(store, "VOLUMEUNIT", power=3),
    )
