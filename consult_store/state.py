"""Store state snapshot and the reducer that advances it.

``reduce`` is a pure function: it never mutates the state it receives and
reads the clock only through the ``at`` field carried by a
:class:`~consult_store.actions.Transition`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Optional, Type, get_args

from consult_store import collection as coll
from consult_store.actions import (
    Action,
    AddSubItem,
    Append,
    BulkPatch,
    ClearError,
    ClearFilters,
    ClearFocus,
    MergeStatistics,
    Patch,
    RemoveSubItem,
    ReplaceAll,
    RequestFailed,
    RequestKind,
    RequestStarted,
    RequestSucceeded,
    Reset,
    SetFilters,
    SetFocus,
    SetPage,
    SetPageSize,
    SetSearchTerm,
    SetSort,
    Transition,
)
from consult_store.focus import FocusMirror
from consult_store.kinds import EntityKind
from consult_store.statistics import StatusStatistics, payment_created, payment_transitioned
from consult_store.subcollections import SubCollectionManager
from consult_store.views import FilterCriteria, SortSpec


@dataclass(frozen=True)
class StoreState:
    """Everything one entity store holds at a point in time."""

    kind: EntityKind
    statistics: StatusStatistics
    sort: SortSpec
    collection: coll.Collection = ()
    focus: FocusMirror = field(default_factory=FocusMirror)
    filters: FilterCriteria = field(default_factory=FilterCriteria)
    page: int = 1
    page_size: int = 10
    busy: FrozenSet[RequestKind] = frozenset()
    error: Optional[str] = None
    idempotent_statistics: bool = False


def initial_state(
    kind: EntityKind, *, page_size: int = 10, idempotent_statistics: bool = False
) -> StoreState:
    return StoreState(
        kind=kind,
        statistics=kind.empty_statistics(),
        sort=kind.default_sort,
        page_size=max(1, page_size),
        idempotent_statistics=idempotent_statistics,
    )


# ----------------------------------------------------------------------
# Collection handlers
# ----------------------------------------------------------------------
def _replace_all(state: StoreState, action: ReplaceAll) -> StoreState:
    kind = state.kind
    stats = state.statistics
    if action.statistics is not None:
        stats = StatusStatistics.from_snapshot(action.statistics, kind.status_enum)
    return replace(
        state,
        collection=coll.replace_all(kind.validate(item) for item in action.entities),
        statistics=stats,
    )


def _merge_statistics(state: StoreState, action: MergeStatistics) -> StoreState:
    update = StatusStatistics.from_snapshot(action.statistics, state.kind.status_enum)
    return replace(state, statistics=state.statistics.merged(update))


def _append(state: StoreState, action: Append) -> StoreState:
    entity = state.kind.validate(action.entity)
    stats = state.statistics
    if action.count_initial_status:
        stats = stats.on_created(entity.status)
        if state.kind.tracks_amounts:
            stats = payment_created(stats, entity.status, entity.amount)
    return replace(state, collection=coll.append(state.collection, entity), statistics=stats)


def _patch(state: StoreState, action: Patch) -> StoreState:
    patch = state.kind.make_patch(action.fields)
    return replace(
        state,
        collection=coll.patch(state.collection, action.entity_id, patch),
        focus=state.focus.apply(action.entity_id, lambda entity: coll.patched(entity, patch)),
    )


def _bulk_patch(state: StoreState, action: BulkPatch) -> StoreState:
    for entity_id, fields in action.updates:
        state = _patch(state, Patch(entity_id, fields))
    return state


def _transition(state: StoreState, action: Transition) -> StoreState:
    kind = state.kind
    new_status = kind.coerce_status(action.new_status)
    if new_status is None:
        raise ValueError(f"unknown {kind.name} status {action.new_status!r}")
    previous = kind.coerce_status(action.previous_status)
    changes = kind.make_patch(action.fields).changes() if action.fields is not None else {}

    existing = coll.find(state.collection, action.entity_id)
    if existing is None and state.focus.holds(action.entity_id):
        existing = state.focus.current

    report = True
    if state.idempotent_statistics and existing is not None:
        previous = existing.status
        report = existing.status != new_status

    stats = state.statistics
    if report:
        stats = stats.on_transition(previous, new_status)
        if kind.tracks_amounts and existing is not None:
            stats = payment_transitioned(
                stats, previous, new_status, existing.amount, changes.get("refunded_amount")
            )

    def move(entity):
        return coll.transitioned(entity, new_status, action.at, changes)

    return replace(
        state,
        collection=coll.update(state.collection, action.entity_id, move),
        focus=state.focus.apply(action.entity_id, move),
        statistics=stats,
    )


def _sub_items(state: StoreState, name: str) -> SubCollectionManager:
    return SubCollectionManager(name, state.kind.sub_collections)


def _add_sub_item(state: StoreState, action: AddSubItem) -> StoreState:
    collection, focus = _sub_items(state, action.collection_name).add(
        state.collection, state.focus, action.parent_id, action.item
    )
    return replace(state, collection=collection, focus=focus)


def _remove_sub_item(state: StoreState, action: RemoveSubItem) -> StoreState:
    collection, focus = _sub_items(state, action.collection_name).remove(
        state.collection, state.focus, action.parent_id, action.item_id
    )
    return replace(state, collection=collection, focus=focus)


def _reset(state: StoreState, action: Reset) -> StoreState:
    return replace(
        state,
        collection=(),
        focus=state.focus.clear(),
        statistics=state.kind.empty_statistics(),
        error=None,
    )


# ----------------------------------------------------------------------
# Focus handlers
# ----------------------------------------------------------------------
def _set_focus(state: StoreState, action: SetFocus) -> StoreState:
    return replace(state, focus=state.focus.set_current(state.kind.validate(action.entity)), error=None)


def _clear_focus(state: StoreState, action: ClearFocus) -> StoreState:
    return replace(state, focus=state.focus.clear())


# ----------------------------------------------------------------------
# Request lifecycle handlers
# ----------------------------------------------------------------------
def _request_started(state: StoreState, action: RequestStarted) -> StoreState:
    return replace(state, busy=state.busy | {action.request}, error=None)


def _request_succeeded(state: StoreState, action: RequestSucceeded) -> StoreState:
    state = replace(state, busy=state.busy - {action.request}, error=None)
    if action.result is not None:
        state = reduce(state, action.result)
    return state


def _request_failed(state: StoreState, action: RequestFailed) -> StoreState:
    return replace(state, busy=state.busy - {action.request}, error=action.message)


def _clear_error(state: StoreState, action: ClearError) -> StoreState:
    return replace(state, error=None)


# ----------------------------------------------------------------------
# List view handlers
# ----------------------------------------------------------------------
def _set_filters(state: StoreState, action: SetFilters) -> StoreState:
    supplied = FilterCriteria.model_validate(dict(action.criteria)).model_dump(exclude_unset=True)
    merged = {**state.filters.model_dump(), **supplied}
    return replace(state, filters=FilterCriteria.model_validate(merged), page=1)


def _clear_filters(state: StoreState, action: ClearFilters) -> StoreState:
    return replace(state, filters=FilterCriteria(), page=1)


def _set_search_term(state: StoreState, action: SetSearchTerm) -> StoreState:
    return _set_filters(state, SetFilters({"search_term": action.term}))


def _set_sort(state: StoreState, action: SetSort) -> StoreState:
    sort = action.sort if isinstance(action.sort, SortSpec) else SortSpec.model_validate(action.sort)
    return replace(state, sort=sort)


def _set_page(state: StoreState, action: SetPage) -> StoreState:
    return replace(state, page=max(1, int(action.page)))


def _set_page_size(state: StoreState, action: SetPageSize) -> StoreState:
    return replace(state, page_size=max(1, int(action.page_size)), page=1)


_HANDLERS: Dict[Type[Any], Callable[[StoreState, Any], StoreState]] = {
    ReplaceAll: _replace_all,
    MergeStatistics: _merge_statistics,
    Append: _append,
    Patch: _patch,
    BulkPatch: _bulk_patch,
    Transition: _transition,
    AddSubItem: _add_sub_item,
    RemoveSubItem: _remove_sub_item,
    Reset: _reset,
    SetFocus: _set_focus,
    ClearFocus: _clear_focus,
    RequestStarted: _request_started,
    RequestSucceeded: _request_succeeded,
    RequestFailed: _request_failed,
    ClearError: _clear_error,
    SetFilters: _set_filters,
    ClearFilters: _clear_filters,
    SetSearchTerm: _set_search_term,
    SetSort: _set_sort,
    SetPage: _set_page,
    SetPageSize: _set_page_size,
}

_missing = set(get_args(Action)) ^ set(_HANDLERS)
if _missing:  # pragma: no cover - caught on import during development
    raise RuntimeError(f"reducer handlers out of sync with Action: {sorted(t.__name__ for t in _missing)}")


def reduce(state: StoreState, action: Action) -> StoreState:
    """Return the state that results from applying ``action`` to ``state``."""

    try:
        handler = _HANDLERS[type(action)]
    except KeyError:
        raise TypeError(f"unsupported action {type(action).__name__}") from None
    return handler(state, action)


__all__ = ["StoreState", "initial_state", "reduce"]
