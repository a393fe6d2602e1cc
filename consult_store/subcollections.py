"""Ordered child lists (documents, notes) nested inside a parent entity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, FrozenSet, Mapping, Tuple, Union

from consult_store import collection as coll
from consult_store.errors import UnknownSubCollectionError
from consult_store.focus import FocusMirror
from consult_store.models import AnyEntity, SubItem, merge_fields


def _items(entity: AnyEntity, name: str) -> Tuple[SubItem, ...]:
    return tuple(getattr(entity, name, None) or ())


def with_item(entity: AnyEntity, name: str, item: SubItem) -> AnyEntity:
    return merge_fields(entity, {name: _items(entity, name) + (item,)})


def without_item(entity: AnyEntity, name: str, item_id: str) -> AnyEntity:
    kept = tuple(existing for existing in _items(entity, name) if existing.id != item_id)
    return merge_fields(entity, {name: kept})


@dataclass(frozen=True)
class SubCollectionManager:
    """Adds and removes items of one named list, in the collection and the mirror.

    Ids are not checked for uniqueness; a duplicate id yields two members
    sharing it and ``remove`` will drop both.
    """

    name: str
    allowed: FrozenSet[str]

    def __post_init__(self) -> None:
        if self.name not in self.allowed:
            raise UnknownSubCollectionError(
                f"unknown sub-collection {self.name!r}; expected one of {sorted(self.allowed)}"
            )

    def add(
        self,
        collection: coll.Collection,
        focus: FocusMirror,
        parent_id: str,
        item: Union[SubItem, Mapping[str, Any]],
    ) -> Tuple[coll.Collection, FocusMirror]:
        item = item if isinstance(item, SubItem) else SubItem.model_validate(item)
        update = lambda entity: with_item(entity, self.name, item)  # noqa: E731
        return coll.update(collection, parent_id, update), focus.apply(parent_id, update)

    def remove(
        self,
        collection: coll.Collection,
        focus: FocusMirror,
        parent_id: str,
        item_id: str,
    ) -> Tuple[coll.Collection, FocusMirror]:
        update = lambda entity: without_item(entity, self.name, str(item_id))  # noqa: E731
        return coll.update(collection, parent_id, update), focus.apply(parent_id, update)


__all__ = ["SubCollectionManager", "with_item", "without_item"]
