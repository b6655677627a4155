"""ExtractedElement and the result of one extraction run.

These are the consumer-facing models: everything the engine hands back to a
caller is one of the pydantic models below, so results serialise with
``model_dump(mode="json")``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ifcextract.config import UNKNOWN_STOREY, ZERO_VOLUME


class MaterialFact(BaseModel):
    """One material share of an element."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    fraction: float = 0.0
    volume: float | None = None
    layer_set_name: str = ""
    count: int = 1
    thickness: str | None = None
    layer_name: str | None = None

    def description(self) -> str:
        """Material key used by the usage summary.

        ``"Brick (Wall Set) 0.100 [Outer Leaf]"`` - name, then the optional
        layer-set name, thickness and layer name.
        """
        parts = [self.name]
        if self.layer_set_name:
            parts.append(f"({self.layer_set_name})")
        if self.thickness is not None:
            parts.append(self.thickness)
        if self.layer_name:
            parts.append(f"[{self.layer_name}]")
        return " ".join(parts)


class GeometryReference(BaseModel):
    """Opaque pointer to one shape representation of an element."""

    model_config = ConfigDict(frozen=True)

    id: int
    identifier: str | None = None
    representation_type: str | None = None
    items: list[int] = Field(default_factory=list)


class ExtractedElement(BaseModel):
    """A building element with its resolved semantic data."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: str
    name: str
    building_storey: str = UNKNOWN_STOREY
    materials: list[MaterialFact] = Field(default_factory=list)
    volume: str | None = ZERO_VOLUME
    is_load_bearing: bool = False
    is_external: bool = False
    geometric_representation: list[GeometryReference] | None = None
    psets: dict[str, dict[str, Any]] = Field(default_factory=dict)


class Diagnostic(BaseModel):
    """A non-fatal problem found while reading the document."""

    line: int
    column: int = 0
    message: str
    severity: Literal["error", "warning"] = "error"


class StoreySummary(BaseModel):
    """A building storey and the elements it holds."""

    id: int
    name: str
    elevation: str | None = None
    element_ids: list[int] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Everything one call to :func:`ifcextract.extract` produces."""

    elements: list[ExtractedElement] = Field(default_factory=list)
    counts_by_type: dict[str, int] = Field(default_factory=dict)
    counts_by_storey: dict[str, dict[str, int]] = Field(default_factory=dict)
    material_usage: dict[str, dict[str, int]] = Field(default_factory=dict)
    storeys: list[StoreySummary] = Field(default_factory=list)
    geometry_element_ids: list[int] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    schema_identifiers: list[str] = Field(default_factory=list)
    entity_count: int = 0
    length_scale: float = 1.0

    @property
    def has_errors(self) -> bool:
        return any(d.severity == "error" for d in self.diagnostics)

    def geometry_elements(self) -> list[ExtractedElement]:
        """The geometry-bearing view of :attr:`elements`."""
        with_geometry = set(self.geometry_element_ids)
        return [e for e in self.elements if e.id in with_geometry]

    def elements_by_type(self) -> dict[str, list[ExtractedElement]]:
        grouped: dict[str, list[ExtractedElement]] = {}
        for element in self.elements:
            grouped.setdefault(element.type, []).append(element)
        return grouped
