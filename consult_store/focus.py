"""Single-slot mirror of the entity shown on a detail screen."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional

from consult_store.collection import Collection, find
from consult_store.models import AnyEntity


@dataclass(frozen=True)
class FocusMirror:
    """Read-optimised copy of one collection member.

    The reducer forwards every patch, transition and sub-item change whose id
    matches ``current``.  Nothing flows the other way: an edit made against the
    mirror has to be dispatched as an action to reach the collection.
    """

    current: Optional[AnyEntity] = None

    def set_current(self, entity: AnyEntity) -> "FocusMirror":
        return replace(self, current=entity)

    def clear(self) -> "FocusMirror":
        return replace(self, current=None)

    def holds(self, entity_id: str) -> bool:
        return self.current is not None and self.current.id == entity_id

    def apply(self, entity_id: str, fn: Callable[[AnyEntity], AnyEntity]) -> "FocusMirror":
        if not self.holds(entity_id):
            return self
        return replace(self, current=fn(self.current))


def live_focus(collection: Collection, mirror: FocusMirror) -> Optional[AnyEntity]:
    """Resolve the focused id against the collection instead of the copy.

    Returns ``None`` when nothing is focused or the collection no longer holds
    the id (for example after a fetch that filtered it out).
    """

    if mirror.current is None:
        return None
    return find(collection, mirror.current.id)


__all__ = ["FocusMirror", "live_focus"]
