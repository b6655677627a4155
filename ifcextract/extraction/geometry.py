"""Which elements carry geometry, and pointers to their shape representations.

An element has geometry when its ``Representation`` attribute points at an
``IFCPRODUCTDEFINITIONSHAPE`` whose ``Representations`` list resolves to at
least one shape representation.  No geometry is evaluated; the representation
items stay opaque ids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ifcextract.config import ATTR_REPRESENTATION
from ifcextract.models.element import GeometryReference
from ifcextract.models.record import EntityRecord
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

REPRESENTATION_TYPES = frozenset({"IFCSHAPEREPRESENTATION", "IFCTOPOLOGYREPRESENTATION"})

# IfcProductDefinitionShape(Name, Description, Representations)
_SHAPE_REPRESENTATIONS = 2
# IfcShapeRepresentation(ContextOfItems, RepresentationIdentifier, RepresentationType, Items)
_REP_IDENTIFIER = 1
_REP_TYPE = 2
_REP_ITEMS = 3


@dataclass
class GeometryIndex:
    """Geometry-bearing element ids and their representation pointers."""

    ids: set[int] = field(default_factory=set)
    references: dict[int, list[GeometryReference]] = field(default_factory=dict)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self.ids

    def get(self, element_id: int) -> list[GeometryReference] | None:
        return self.references.get(element_id)


def representation_of(element: EntityRecord, store: EntityStore) -> EntityRecord | None:
    """The product definition shape of *element*, if any."""
    shape = store.resolve(element.attr(ATTR_REPRESENTATION))
    if shape is not None and shape.type == "IFCPRODUCTDEFINITIONSHAPE":
        return shape
    return None


def geometry_references(element: EntityRecord, store: EntityStore) -> list[GeometryReference]:
    shape = representation_of(element, store)
    if shape is None:
        return []
    references = []
    for rep in store.resolve_all(shape.references(_SHAPE_REPRESENTATIONS)):
        if rep.type not in REPRESENTATION_TYPES:
            continue
        references.append(GeometryReference(
            id=rep.id,
            identifier=rep.text(_REP_IDENTIFIER),
            representation_type=rep.text(_REP_TYPE),
            items=rep.references(_REP_ITEMS),
        ))
    return references


def associate_geometry(store: EntityStore, elements: Iterable[EntityRecord]) -> GeometryIndex:
    """Build the geometry index for *elements*."""
    index = GeometryIndex()
    for element in elements:
        references = geometry_references(element, store)
        if not references:
            continue
        index.ids.add(element.id)
        index.references[element.id] = references
    logger.info("%d elements carry geometry", len(index.ids))
    return index
