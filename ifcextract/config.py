"""Global configuration: sentinels, constants, attribute positions, parse options."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Sentinels used when a fact cannot be determined
UNKNOWN_STOREY = "Unknown Storey"
UNKNOWN_ELEMENT = "Unknown Element"
UNKNOWN_MATERIAL = "Unknown Material"
UNKNOWN_LAYER_SET = "Unknown Layer Set"
UNKNOWN_CONSTITUENT_SET = "Unknown Constituent Set"
SINGLE_MATERIAL = "Single Material"
MATERIAL_LIST = "Material List"
ZERO_VOLUME = "0.000"

# Material fractions are compared against 0.0 and 1.0 with this tolerance
FRACTION_EPSILON = 1e-4

# How many ids before a constituent are searched for an unlinked length quantity
PROXIMITY_WINDOW = 5

# Quantity / property names that carry a layer or constituent thickness
THICKNESS_NAMES = ("Width", "LayerThickness", "Thickness")

# Property-set lookup order for constituents (most specific first)
THICKNESS_PROPERTY_NAMES = ("LayerThickness", "Width", "Thickness")

# Fixed precision of every canonical length / volume string
CANONICAL_DECIMALS = 3

DEFAULT_MAX_DIAGNOSTICS = 100

# Attribute positions shared by every IfcRoot / IfcProduct subtype
ATTR_NAME = 2
ATTR_REPRESENTATION = 6

# IfcRel* records: (RelatedObjects, RelatingX)
ATTR_RELATED = 4
ATTR_RELATING = 5

# IfcRelAggregates: (RelatingObject, RelatedObjects)
ATTR_AGGREGATE_PARENT = 4
ATTR_AGGREGATE_CHILDREN = 5

# IfcBuildingStorey.Elevation
ATTR_STOREY_ELEVATION = 9

STOREY_TYPE = "IFCBUILDINGSTOREY"

# Entity types treated as extractable building elements.  Subtypes are listed
# explicitly because the store has no schema to walk inheritance with.
ELEMENT_TYPES: frozenset[str] = frozenset({
    "IFCBEAM",
    "IFCBEAMSTANDARDCASE",
    "IFCBUILDINGELEMENTPART",
    "IFCBUILDINGELEMENTPROXY",
    "IFCCHIMNEY",
    "IFCCOLUMN",
    "IFCCOLUMNSTANDARDCASE",
    "IFCCOVERING",
    "IFCCURTAINWALL",
    "IFCDOOR",
    "IFCDOORSTANDARDCASE",
    "IFCELEMENTASSEMBLY",
    "IFCFOOTING",
    "IFCFURNISHINGELEMENT",
    "IFCMEMBER",
    "IFCMEMBERSTANDARDCASE",
    "IFCPILE",
    "IFCPLATE",
    "IFCPLATESTANDARDCASE",
    "IFCRAILING",
    "IFCRAMP",
    "IFCRAMPFLIGHT",
    "IFCREINFORCINGBAR",
    "IFCREINFORCINGMESH",
    "IFCROOF",
    "IFCSHADINGDEVICE",
    "IFCSLAB",
    "IFCSLABELEMENTEDCASE",
    "IFCSLABSTANDARDCASE",
    "IFCSTAIR",
    "IFCSTAIRFLIGHT",
    "IFCWALL",
    "IFCWALLELEMENTEDCASE",
    "IFCWALLSTANDARDCASE",
    "IFCWINDOW",
    "IFCWINDOWSTANDARDCASE",
})

# Environment variables read by ParseOptions.from_env
_ENV_KEYS: dict[str, str] = {
    "IFCEXTRACT_MAX_DIAGNOSTICS": "max_diagnostics",
    "IFCEXTRACT_STRICT": "strict",
    "IFCEXTRACT_INCLUDE_GEOMETRY": "include_geometry",
    "IFCEXTRACT_GEOMETRY_ONLY": "geometry_only",
}

_TRUTHY = {"1", "true", "yes", "on"}
_NONE_VALUES = {"", "none", "unlimited"}


class ParseOptions(BaseModel):
    """Options accepted by :func:`ifcextract.extract`."""

    model_config = ConfigDict(frozen=True)

    max_diagnostics: int | None = Field(default=DEFAULT_MAX_DIAGNOSTICS, ge=0)
    """Abort once more diagnostics than this were collected; *None* disables the ceiling."""

    strict: bool = False
    """Raise on the first malformed record instead of recording a diagnostic."""

    include_geometry: bool = True
    """Compute the geometry association (skippable for speed)."""

    geometry_only: bool = False
    """Restrict the element list to geometry-bearing elements."""

    element_types: frozenset[str] = ELEMENT_TYPES
    """Entity type tags that make up the element list."""

    @field_validator("element_types", mode="before")
    @classmethod
    def _upper_types(cls, value: object) -> object:
        if isinstance(value, (set, frozenset, list, tuple)):
            return frozenset(str(v).upper() for v in value)
        return value

    @model_validator(mode="after")
    def _check_geometry_flags(self) -> ParseOptions:
        if self.geometry_only and not self.include_geometry:
            raise ValueError("geometry_only requires include_geometry")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> ParseOptions:
        """Build options from defaults, then environment variables, then *overrides*."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        for key, field_name in _ENV_KEYS.items():
            raw = env.get(key)
            if raw is None:
                continue
            raw = raw.strip()
            if field_name == "max_diagnostics":
                values[field_name] = None if raw.lower() in _NONE_VALUES else raw
            else:
                values[field_name] = raw.lower() in _TRUTHY

        values.update(overrides)
        return cls(**values)
