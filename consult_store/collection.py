"""Pure operations on the canonical in-memory collection of one entity kind.

Collections are tuples of immutable entities; each operation returns a new
tuple and leaves its input untouched.  None of these functions touch the
statistics: the reducer pairs them with the aggregator inside a single action.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from consult_store.models import AnyEntity, EntityPatch, merge_fields

Collection = Tuple[AnyEntity, ...]
EntityUpdate = Callable[[AnyEntity], AnyEntity]


def index_of(collection: Collection, entity_id: str) -> int:
    for index, entity in enumerate(collection):
        if entity.id == entity_id:
            return index
    return -1


def find(collection: Collection, entity_id: str) -> Optional[AnyEntity]:
    index = index_of(collection, entity_id)
    return collection[index] if index >= 0 else None


def replace_all(entities: Iterable[AnyEntity]) -> Collection:
    return tuple(entities)


def append(collection: Collection, entity: AnyEntity) -> Collection:
    """Insert ``entity`` at the head, newest first."""

    return (entity,) + tuple(collection)


def update(collection: Collection, entity_id: str, fn: EntityUpdate) -> Collection:
    """Apply ``fn`` to the first entity with ``entity_id``; no-op when absent."""

    index = index_of(collection, entity_id)
    if index < 0:
        return collection
    items = list(collection)
    items[index] = fn(items[index])
    return tuple(items)


def patched(entity: AnyEntity, patch: EntityPatch) -> AnyEntity:
    return merge_fields(entity, patch.changes())


def transitioned(
    entity: AnyEntity,
    new_status: Enum,
    at: datetime,
    changes: Optional[Mapping[str, Any]] = None,
) -> AnyEntity:
    fields = dict(changes or {})
    fields["status"] = new_status
    fields["updated_at"] = at
    return merge_fields(entity, fields)


def patch(collection: Collection, entity_id: str, patch_fields: EntityPatch) -> Collection:
    return update(collection, entity_id, lambda entity: patched(entity, patch_fields))


__all__ = [
    "Collection",
    "index_of",
    "find",
    "replace_all",
    "append",
    "update",
    "patched",
    "transitioned",
    "patch",
]
