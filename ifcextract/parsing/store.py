"""EntityStore - the per-parse mapping from entity id to parsed record.

Purely storage: no attribute is interpreted here.  One store belongs to one
parse session and is handed by reference through the later passes.

Duplicate ids follow a last-write-wins policy: a later record with an id that
is already stored replaces the earlier one.  Iteration order stays the order
in which ids were first seen.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from ifcextract.models.record import AttributeValue, EntityRecord, as_reference

logger = logging.getLogger(__name__)


class EntityStore:
    """Append-only id -> :class:`EntityRecord` mapping with a type index."""

    def __init__(self, records: Iterable[EntityRecord] = ()) -> None:
        self._records: dict[int, EntityRecord] = {}
        self._by_type: dict[str, dict[int, None]] = {}
        self.replaced_ids: list[int] = []
        for record in records:
            self.add(record)

    def add(self, record: EntityRecord) -> bool:
        """Insert *record*; return *True* when it replaced an earlier one."""
        previous = self._records.get(record.id)
        self._records[record.id] = record
        self._by_type.setdefault(record.type, {})[record.id] = None

        if previous is None:
            return False
        if previous.type != record.type:
            self._by_type[previous.type].pop(record.id, None)
        self.replaced_ids.append(record.id)
        logger.debug("Entity #%d redefined on line %d; keeping the later record", record.id, record.line)
        return True

    def get(self, entity_id: int | None) -> EntityRecord | None:
        if entity_id is None:
            return None
        return self._records.get(entity_id)

    def resolve(self, value: AttributeValue) -> EntityRecord | None:
        """Dereference a reference attribute; *None* if it is not one or dangles."""
        return self.get(as_reference(value))

    def resolve_all(self, ids: Iterable[int]) -> list[EntityRecord]:
        """Dereference *ids*, silently dropping dangling ones."""
        resolved = []
        for entity_id in ids:
            record = self._records.get(entity_id)
            if record is None:
                logger.debug("Dangling reference #%d", entity_id)
                continue
            resolved.append(record)
        return resolved

    def by_type(self, *types: str) -> list[EntityRecord]:
        """Records of the given type tags, in file order within each type."""
        found: list[EntityRecord] = []
        for type_name in types:
            for entity_id in self._by_type.get(type_name.upper(), ()):
                found.append(self._records[entity_id])
        return found

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._records

    def __iter__(self) -> Iterator[EntityRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)
