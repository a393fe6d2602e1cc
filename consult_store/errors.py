"""Exceptions raised inside the state layer.

Workflows turn every one of these into a single human-readable message in the
store's error slot, the same slot remote failures land in.
"""

from __future__ import annotations


class ConsultStoreError(Exception):
    """Base class for errors raised by the consult store."""


class InvalidTransitionError(ConsultStoreError):
    """Raised when a status change is not an edge of the kind's state machine."""

    def __init__(self, kind: str, previous: object, new: object) -> None:
        self.kind = kind
        self.previous = previous
        self.new = new
        super().__init__(f"Cannot move {kind} from {_label(previous)} to {_label(new)}")


class UnknownSubCollectionError(ConsultStoreError):
    """Raised when an action names a sub-collection the entity kind does not have."""


class EntityNotFoundError(ConsultStoreError):
    """Raised by workflows when a request names an id the store does not hold."""


def _label(value: object) -> str:
    if value is None:
        return "an unknown status"
    return str(getattr(value, "value", value))


__all__ = [
    "ConsultStoreError",
    "InvalidTransitionError",
    "UnknownSubCollectionError",
    "EntityNotFoundError",
]
