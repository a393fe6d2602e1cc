"""The closed set of actions a store understands.

Each action is a small frozen dataclass.  :data:`Action` is the union the
reducer dispatches over; :mod:`consult_store.state` checks at import time that
it has a handler for every member.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from consult_store.models import AnyEntity, EntityPatch, SubItem
from consult_store.time_utils import utc_now
from consult_store.views import SortSpec

EntityInput = Union[AnyEntity, Mapping[str, Any]]
PatchInput = Union[EntityPatch, Mapping[str, Any]]
StatusInput = Union[str, Enum]


class RequestKind(str, Enum):
    """Which busy flag an asynchronous workflow holds while in flight."""

    FETCH = "fetch"
    SUBMIT = "submit"
    UPDATE = "update"


def _text_id(instance: object, name: str) -> None:
    object.__setattr__(instance, name, str(getattr(instance, name)))


# ----------------------------------------------------------------------
# Collection actions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class ReplaceAll:
    """Full fetch result.

    A snapshot replaces the statistics verbatim; without one (``None``) the
    current statistics are kept.
    """

    entities: Tuple[EntityInput, ...]
    statistics: Optional[Mapping[str, float]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "entities", tuple(self.entities))


@dataclass(frozen=True)
class MergeStatistics:
    """Partial statistics update; keys not named keep their current value."""

    statistics: Mapping[str, float]


@dataclass(frozen=True)
class Append:
    entity: EntityInput
    count_initial_status: bool = True


@dataclass(frozen=True)
class Patch:
    entity_id: str
    fields: PatchInput

    def __post_init__(self) -> None:
        _text_id(self, "entity_id")


@dataclass(frozen=True)
class BulkPatch:
    updates: Tuple[Tuple[str, PatchInput], ...]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "updates", tuple((str(entity_id), fields) for entity_id, fields in self.updates)
        )


@dataclass(frozen=True)
class Transition:
    """Status change plus any fields the move records (reason, timestamps)."""

    entity_id: str
    new_status: StatusInput
    previous_status: Optional[StatusInput] = None
    fields: Optional[PatchInput] = None
    at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        _text_id(self, "entity_id")


@dataclass(frozen=True)
class AddSubItem:
    parent_id: str
    collection_name: str
    item: Union[SubItem, Mapping[str, Any]]

    def __post_init__(self) -> None:
        _text_id(self, "parent_id")


@dataclass(frozen=True)
class RemoveSubItem:
    parent_id: str
    collection_name: str
    item_id: str

    def __post_init__(self) -> None:
        _text_id(self, "parent_id")
        _text_id(self, "item_id")


@dataclass(frozen=True)
class Reset:
    """Drop the collection, the focus, the statistics and the error."""


# ----------------------------------------------------------------------
# Focus actions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SetFocus:
    entity: EntityInput


@dataclass(frozen=True)
class ClearFocus:
    pass


# ----------------------------------------------------------------------
# Request lifecycle
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class RequestStarted:
    request: RequestKind = RequestKind.FETCH


@dataclass(frozen=True)
class RequestSucceeded:
    """Clear the busy flag and apply ``result`` in the same step."""

    request: RequestKind = RequestKind.FETCH
    result: Optional["Action"] = None


@dataclass(frozen=True)
class RequestFailed:
    request: RequestKind = RequestKind.FETCH
    message: str = "Request failed"


@dataclass(frozen=True)
class ClearError:
    pass


# ----------------------------------------------------------------------
# List view actions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SetFilters:
    criteria: Mapping[str, Any]


@dataclass(frozen=True)
class ClearFilters:
    pass


@dataclass(frozen=True)
class SetSearchTerm:
    term: str


@dataclass(frozen=True)
class SetSort:
    sort: Union[SortSpec, Mapping[str, Any]]


@dataclass(frozen=True)
class SetPage:
    page: int


@dataclass(frozen=True)
class SetPageSize:
    page_size: int


Action = Union[
    ReplaceAll,
    MergeStatistics,
    Append,
    Patch,
    BulkPatch,
    Transition,
    AddSubItem,
    RemoveSubItem,
    Reset,
    SetFocus,
    ClearFocus,
    RequestStarted,
    RequestSucceeded,
    RequestFailed,
    ClearError,
    SetFilters,
    ClearFilters,
    SetSearchTerm,
    SetSort,
    SetPage,
    SetPageSize,
]


__all__ = [
    "RequestKind",
    "ReplaceAll",
    "MergeStatistics",
    "Append",
    "Patch",
    "BulkPatch",
    "Transition",
    "AddSubItem",
    "RemoveSubItem",
    "Reset",
    "SetFocus",
    "ClearFocus",
    "RequestStarted",
    "RequestSucceeded",
    "RequestFailed",
    "ClearError",
    "SetFilters",
    "ClearFilters",
    "SetSearchTerm",
    "SetSort",
    "SetPage",
    "SetPageSize",
    "Action",
]
