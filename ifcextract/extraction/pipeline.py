"""Main extraction pipeline.

Entry point: ``extract(text, options)``

Runs the passes strictly in sequence, each over a fully built input:
read (tokenize, parse, store) -> unit scales -> relationships -> materials
-> geometry association -> element assembly -> aggregate maps.  All state
lives in per-call containers, so independent calls may run concurrently.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ifcextract.config import ATTR_NAME, UNKNOWN_ELEMENT, UNKNOWN_STOREY, ParseOptions
from ifcextract.errors import InvalidInputError
from ifcextract.extraction.geometry import GeometryIndex, associate_geometry
from ifcextract.extraction.materials import MaterialResolver
from ifcextract.extraction.properties import collect_psets, find_flag, type_property_sets
from ifcextract.extraction.quantities import VolumeContext, resolve_volume
from ifcextract.extraction.relationships import RelationshipIndex, RelationshipResolver
from ifcextract.extraction.summary import count_by_storey, count_by_type, material_usage, storey_summaries
from ifcextract.extraction.units import UnitScales, find_unit_scales
from ifcextract.models.element import ExtractedElement, ExtractionResult, MaterialFact
from ifcextract.models.record import EntityRecord
from ifcextract.parsing.reader import read_document
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)


def _as_text(document: object) -> str:
    """Validate the raw input; only text (or UTF-8 bytes) is accepted."""
    if isinstance(document, (bytes, bytearray)):
        try:
            document = bytes(document).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputError(f"Input is not UTF-8 text: {exc}") from exc
    if not isinstance(document, str):
        raise InvalidInputError(f"Expected text input, got {type(document).__name__}")
    if "\x00" in document:
        raise InvalidInputError("Input contains NUL characters; not a text document")
    return document


def _element_materials(facts: list[MaterialFact], volume: float | None) -> list[MaterialFact]:
    """Give every fact its share of the element volume."""
    if not volume or volume <= 0:
        return list(facts)
    return [f.model_copy(update={"volume": round(f.fraction * volume, 6)}) for f in facts]


class _ElementBuilder:
    """Assemble ``ExtractedElement`` instances from the resolved indices."""

    def __init__(
        self,
        store: EntityStore,
        index: RelationshipIndex,
        units: UnitScales,
        geometry: GeometryIndex | None,
    ) -> None:
        self.store = store
        self.index = index
        self.units = units
        self.geometry = geometry
        self.storey_of: dict[int, int | None] = {}

    def _storey_name(self, element: EntityRecord) -> str:
        storey, structure = self.index.find_storey(element.id)
        self.storey_of[element.id] = storey.id if storey is not None else None
        if storey is not None:
            return storey.text(ATTR_NAME) or UNKNOWN_STOREY
        if structure is not None:
            return structure.text(ATTR_NAME) or UNKNOWN_STOREY
        return UNKNOWN_STOREY

    def build(self, element: EntityRecord) -> ExtractedElement:
        own_psets = self.store.resolve_all(self.index.property_definitions(element.id))
        type_psets = type_property_sets(self.index.type_object(element.id), self.store)

        # Element-level values override those inherited from the type
        psets = collect_psets(type_psets + own_psets, self.store)

        raw_volume = resolve_volume(VolumeContext(
            store=self.store,
            element=element,
            psets=tuple(own_psets + type_psets),
        ))
        volume = raw_volume * self.units.volume if raw_volume is not None else None

        geometry = None
        if self.geometry is not None:
            geometry = self.geometry.get(element.id) or []

        return ExtractedElement(
            id=element.id,
            type=element.type,
            name=element.text(ATTR_NAME) or UNKNOWN_ELEMENT,
            building_storey=self._storey_name(element),
            materials=_element_materials(self.index.materials(element.id), volume),
            volume=self.units.volume_text(raw_volume),
            is_load_bearing=find_flag(psets, "LoadBearing"),
            is_external=find_flag(psets, "IsExternal"),
            geometric_representation=geometry,
            psets=psets,
        )


def extract(document: str | bytes, options: ParseOptions | None = None) -> ExtractionResult:
    """Extract building elements and their semantic data from STEP text.

    Parameters
    ----------
    document:
        The complete exchange file, as text or UTF-8 bytes.
    options:
        Parse options; defaults to :class:`ParseOptions` defaults.

    Returns
    -------
    ExtractionResult
        Elements, aggregate maps and the non-fatal diagnostics.

    Raises
    ------
    InvalidInputError
        The input is not text.
    DiagnosticLimitExceeded
        More diagnostics than ``options.max_diagnostics`` were collected.
    RecordSyntaxError
        A record is malformed and ``options.strict`` is set.
    """
    options = options or ParseOptions()
    text = _as_text(document)

    parsed = read_document(text, options)
    store = parsed.store

    units = find_unit_scales(store)

    resolver = RelationshipResolver(store)
    index = resolver.classify()
    index = resolver.attach_materials(MaterialResolver(store, index, units))

    candidates = [record for record in store if record.type in options.element_types]
    logger.info("Found %d building elements", len(candidates))

    geometry = associate_geometry(store, candidates) if options.include_geometry else None
    if options.geometry_only and geometry is not None:
        candidates = [record for record in candidates if record.id in geometry]

    builder = _ElementBuilder(store, index, units, geometry)
    elements = [builder.build(record) for record in candidates]

    result = ExtractionResult(
        elements=elements,
        counts_by_type=count_by_type(elements),
        counts_by_storey=count_by_storey(elements),
        material_usage=material_usage(elements),
        storeys=storey_summaries(store, builder.storey_of, units),
        geometry_element_ids=[r.id for r in candidates if geometry is not None and r.id in geometry],
        diagnostics=parsed.diagnostics,
        schema_identifiers=parsed.schema_identifiers,
        entity_count=len(store),
        length_scale=units.length,
    )
    logger.info(
        "Extraction complete: %d elements, %d diagnostics",
        len(result.elements),
        len(result.diagnostics),
    )
    return result


def extract_file(path: str | Path, options: ParseOptions | None = None) -> ExtractionResult:
    """Read *path* and run :func:`extract` on it.

    Files are decoded as UTF-8, falling back to Latin-1 for legacy exports.
    """
    path = Path(path)
    logger.info("Opening %s", path)
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("%s is not UTF-8; decoding as Latin-1", path)
        text = raw.decode("latin-1")
    return extract(text, options)
