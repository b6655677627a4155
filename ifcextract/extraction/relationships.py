"""Relationship resolution: material, spatial, aggregation, property and type links.

A single pass over the completed :class:`EntityStore` classifies every
relationship record and fills a per-element :class:`RelationshipEntry`.

Conflict policy is last-write-wins in file order: when several relationship
records target the same element, the one processed later replaces the
material list (or containing structure, or type object) set by an earlier
one.  Aggregation parents and property definitions accumulate instead.

References to ids missing from the store are ignored for that one
relationship; the pass never fails on them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ifcextract.config import (
    ATTR_AGGREGATE_CHILDREN,
    ATTR_AGGREGATE_PARENT,
    ATTR_RELATED,
    ATTR_RELATING,
    STOREY_TYPE,
)
from ifcextract.models.element import MaterialFact
from ifcextract.models.record import EntityRecord
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class RelationshipEntry:
    """Everything the relationship records say about one entity."""

    materials: list[MaterialFact] = field(default_factory=list)
    material_source: int | None = None
    spatial_structure: EntityRecord | None = None
    aggregate_parents: list[int] = field(default_factory=list)
    property_definitions: list[int] = field(default_factory=list)
    type_object: int | None = None


class RelationshipIndex:
    """Derived indices keyed by entity id.  Owned by one parse session."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self.entries: dict[int, RelationshipEntry] = {}
        self.children: dict[int, list[int]] = {}

    def entry(self, entity_id: int) -> RelationshipEntry:
        """Return the entry for *entity_id*, creating it on first use."""
        found = self.entries.get(entity_id)
        if found is None:
            found = self.entries[entity_id] = RelationshipEntry()
        return found

    def get(self, entity_id: int) -> RelationshipEntry | None:
        return self.entries.get(entity_id)

    def add_parent(self, child_id: int, parent_id: int) -> None:
        parents = self.entry(child_id).aggregate_parents
        if parent_id not in parents:
            parents.append(parent_id)
        siblings = self.children.setdefault(parent_id, [])
        if child_id not in siblings:
            siblings.append(child_id)

    def parents(self, entity_id: int) -> list[int]:
        found = self.entries.get(entity_id)
        return found.aggregate_parents if found else []

    def property_definitions(self, entity_id: int) -> list[int]:
        found = self.entries.get(entity_id)
        return found.property_definitions if found else []

    def type_object(self, entity_id: int) -> EntityRecord | None:
        found = self.entries.get(entity_id)
        if found is None or found.type_object is None:
            return None
        return self.store.get(found.type_object)

    def materials(self, entity_id: int) -> list[MaterialFact]:
        """Materials of *entity_id*, inherited from its type object if it has none."""
        found = self.entries.get(entity_id)
        if found is None:
            return []
        if found.materials:
            return found.materials
        if found.type_object is not None:
            type_entry = self.entries.get(found.type_object)
            if type_entry is not None:
                return type_entry.materials
        return []

    def containing_structure(self, entity_id: int) -> EntityRecord | None:
        """The spatial structure holding *entity_id*.

        Elements without their own containment inherit it from the nearest
        aggregation parent that has one.
        """
        seen: set[int] = set()
        current: int | None = entity_id
        while current is not None and current not in seen:
            seen.add(current)
            found = self.entries.get(current)
            if found is not None and found.spatial_structure is not None:
                return found.spatial_structure
            parents = self.parents(current)
            if not parents:
                return None
            parent = self.store.get(parents[0])
            if parent is not None and parent.type == STOREY_TYPE:
                return parent
            current = parents[0]
        return None

    def find_storey(self, entity_id: int) -> tuple[EntityRecord | None, EntityRecord | None]:
        """Return ``(storey, containing structure)`` for *entity_id*.

        When the containing structure is not itself a storey (a space, for
        instance) the aggregation hierarchy is walked upwards to the first
        storey above it.
        """
        structure = self.containing_structure(entity_id)
        seen: set[int] = set()
        current = structure
        while current is not None and current.id not in seen:
            if current.type == STOREY_TYPE:
                return current, structure
            seen.add(current.id)
            parents = self.parents(current.id)
            current = self.store.get(parents[0]) if parents else None
        return None, structure


MaterialSource = Callable[[int], list[MaterialFact]]


class RelationshipResolver:
    """Build a :class:`RelationshipIndex` from a completed store.

    *material_source* turns the id of a relating-material record into its
    normalised material list (see :mod:`ifcextract.extraction.materials`).
    It is only consulted after the pass, once every property definition is
    indexed, and the lists are then attached in file order.
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self.index = RelationshipIndex(store)
        self._material_links: list[tuple[int, list[int]]] = []
        self._handlers: dict[str, Callable[[EntityRecord], None]] = {
            "IFCRELASSOCIATESMATERIAL": self._associates_material,
            "IFCRELCONTAINEDINSPATIALSTRUCTURE": self._contained_in_structure,
            "IFCRELAGGREGATES": self._aggregates,
            "IFCRELDEFINESBYPROPERTIES": self._defines_by_properties,
            "IFCRELDEFINESBYTYPE": self._defines_by_type,
        }

    def _related(self, record: EntityRecord, position: int = ATTR_RELATED) -> list[int]:
        """Related ids of *record* that exist in the store."""
        related = []
        for entity_id in record.references(position):
            if entity_id in self.store:
                related.append(entity_id)
            else:
                logger.debug("#%d (%s) references missing #%d", record.id, record.type, entity_id)
        return related

    def _relating(self, record: EntityRecord, position: int = ATTR_RELATING) -> EntityRecord | None:
        relating = self.store.resolve(record.attr(position))
        if relating is None:
            logger.debug("#%d (%s) has no resolvable relating entity", record.id, record.type)
        return relating

    def _associates_material(self, record: EntityRecord) -> None:
        material = self._relating(record)
        if material is None:
            return
        related = self._related(record)
        if related:
            self._material_links.append((material.id, related))

    def _contained_in_structure(self, record: EntityRecord) -> None:
        structure = self._relating(record)
        if structure is None:
            return
        for entity_id in self._related(record):
            self.index.entry(entity_id).spatial_structure = structure

    def _aggregates(self, record: EntityRecord) -> None:
        parent = self._relating(record, ATTR_AGGREGATE_PARENT)
        if parent is None:
            return
        for child_id in self._related(record, ATTR_AGGREGATE_CHILDREN):
            self.index.add_parent(child_id, parent.id)

    def _defines_by_properties(self, record: EntityRecord) -> None:
        definition = self._relating(record)
        if definition is None:
            return
        for entity_id in self._related(record):
            self.index.entry(entity_id).property_definitions.append(definition.id)

    def _defines_by_type(self, record: EntityRecord) -> None:
        type_object = self._relating(record)
        if type_object is None:
            return
        for entity_id in self._related(record):
            self.index.entry(entity_id).type_object = type_object.id

    def classify(self) -> RelationshipIndex:
        """The single pass over the store; material lists are not attached yet."""
        for record in self.store:
            handler = self._handlers.get(record.type)
            if handler is not None:
                handler(record)
        return self.index

    def attach_materials(self, material_source: MaterialSource) -> RelationshipIndex:
        """Attach normalised material lists, later relationships overwriting earlier ones."""
        for material_id, related in self._material_links:
            facts = material_source(material_id)
            for entity_id in related:
                entry = self.index.entry(entity_id)
                if entry.material_source is not None and entry.material_source != material_id:
                    logger.debug(
                        "#%d: material #%d replaces #%d", entity_id, material_id, entry.material_source
                    )
                entry.materials = facts
                entry.material_source = material_id
        logger.info(
            "Resolved relationships for %d entities (%d material associations)",
            len(self.index.entries),
            len(self._material_links),
        )
        return self.index
