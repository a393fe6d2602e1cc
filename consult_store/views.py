"""Read-side filter, sort and pagination pipeline for list screens.

Everything here is a pure function of its inputs.  ``visible_window`` is the
single entry point used by the store selectors; the smaller helpers are
exported for dashboards that need one stage on its own (for instance the
upcoming/past split on the appointments overview).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from consult_store.statuses import AppointmentStatus
from consult_store.time_utils import ensure_utc, utc_now

if TYPE_CHECKING:  # pragma: no cover
    from consult_store.kinds import EntityKind
    from consult_store.models import AnyEntity

_MATCH_ALL = (None, "", "all")


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    """Single sort key and direction."""

    model_config = ConfigDict(frozen=True)

    field: str = "created_at"
    order: SortOrder = SortOrder.DESC


class FilterCriteria(BaseModel):
    """Optional, conjunctive list filters.  ``None``/``""``/``"all"`` match everything."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: Optional[str] = None
    priority: Optional[str] = None
    specialization: Optional[str] = None
    search_term: Optional[str] = Field(None, alias="searchTerm")
    date_from: Optional[datetime] = Field(None, alias="dateFrom")
    date_to: Optional[datetime] = Field(None, alias="dateTo")
    doctor_id: Optional[str] = Field(None, alias="doctorId")
    patient_id: Optional[str] = Field(None, alias="patientId")
    consultation_type: Optional[str] = Field(None, alias="consultationType")
    min_amount: Optional[float] = Field(None, alias="minAmount")
    max_amount: Optional[float] = Field(None, alias="maxAmount")

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _whole_days(cls, value: Any, info) -> Any:  # noqa: N805
        if isinstance(value, date) and not isinstance(value, datetime):
            bound = time.min if info.field_name == "date_from" else time.max
            return datetime.combine(value, bound, tzinfo=timezone.utc)
        return value

    @field_validator("date_from", "date_to", mode="after")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:  # noqa: N805
        return ensure_utc(value) if value is not None else None

    def is_active(self) -> bool:
        return any(value not in _MATCH_ALL for value in self.model_dump().values())


@dataclass(frozen=True)
class VisibleWindow:
    """A page of entities plus the bookkeeping list screens render."""

    items: Tuple["AnyEntity", ...]
    total_items: int
    total_pages: int
    page: int
    page_size: int

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    @property
    def start_index(self) -> int:
        """1-based index of the first item shown, 0 when empty."""

        return (self.page - 1) * self.page_size + 1 if self.items else 0

    @property
    def end_index(self) -> int:
        return min(self.page * self.page_size, self.total_items) if self.items else 0


# ----------------------------------------------------------------------
# Filtering
# ----------------------------------------------------------------------
def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def _field(entity: "AnyEntity", name: Optional[str]) -> Any:
    if not name:
        return None
    if name in type(entity).model_fields:
        return getattr(entity, name)
    return (entity.model_extra or {}).get(name)


def _equals(actual: Any, wanted: str) -> bool:
    return _text(actual).lower() == wanted.lower()


def matches(entity: "AnyEntity", filters: FilterCriteria, kind: "EntityKind") -> bool:
    """Return ``True`` when ``entity`` satisfies every active criterion."""

    if filters.status not in _MATCH_ALL:
        wanted = kind.coerce_status(filters.status)
        if wanted is None or entity.status != wanted:
            return False
    if filters.priority not in _MATCH_ALL:
        if not _equals(_field(entity, kind.priority_field), filters.priority):
            return False
    if filters.specialization not in _MATCH_ALL:
        if not _equals(_field(entity, "specialization"), filters.specialization):
            return False
    for name in ("doctor_id", "patient_id", "consultation_type"):
        wanted = getattr(filters, name)
        if wanted not in _MATCH_ALL and not _equals(_field(entity, name), wanted):
            return False
    if filters.search_term and filters.search_term.strip():
        needle = filters.search_term.strip().lower()
        if not any(
            needle in _text(_field(entity, name)).lower() for name in kind.search_fields
        ):
            return False
    if filters.date_from is not None or filters.date_to is not None:
        stamp = _field(entity, kind.date_field)
        if not isinstance(stamp, datetime):
            return False
        if filters.date_from is not None and stamp < filters.date_from:
            return False
        if filters.date_to is not None and stamp > filters.date_to:
            return False
    if filters.min_amount is not None or filters.max_amount is not None:
        amount = _field(entity, "amount")
        if amount is None:
            return False
        if filters.min_amount is not None and amount < filters.min_amount:
            return False
        if filters.max_amount is not None and amount > filters.max_amount:
            return False
    return True


def apply_filters(
    collection: Sequence["AnyEntity"], filters: FilterCriteria, kind: "EntityKind"
) -> List["AnyEntity"]:
    return [entity for entity in collection if matches(entity, filters, kind)]


# ----------------------------------------------------------------------
# Sorting
# ----------------------------------------------------------------------
def _sort_key(value: Any) -> Tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, datetime):
        return (1, ensure_utc(value).timestamp())
    return (2, _text(value))


def sort_by_field(collection: Sequence["AnyEntity"], spec: SortSpec) -> List["AnyEntity"]:
    """Stable single-field sort; entities missing the field always go last."""

    present = [e for e in collection if _field(e, spec.field) is not None]
    missing = [e for e in collection if _field(e, spec.field) is None]
    present.sort(
        key=lambda e: _sort_key(_field(e, spec.field)),
        reverse=spec.order == SortOrder.DESC,
    )
    return present + missing


def appointment_order(
    collection: Sequence["AnyEntity"], now: Optional[datetime] = None
) -> List["AnyEntity"]:
    """Upcoming appointments soonest first, then past ones most recent first."""

    now = ensure_utc(now) if now is not None else utc_now()
    upcoming = [a for a in collection if a.scheduled_at >= now]
    past = [a for a in collection if a.scheduled_at < now]
    upcoming.sort(key=lambda a: a.scheduled_at)
    past.sort(key=lambda a: a.scheduled_at, reverse=True)
    return upcoming + past


def partition_upcoming(
    collection: Sequence["AnyEntity"], now: Optional[datetime] = None
) -> Tuple[List["AnyEntity"], List["AnyEntity"]]:
    """Split appointments for dashboards: cancelled ones always count as past."""

    now = ensure_utc(now) if now is not None else utc_now()
    upcoming: List["AnyEntity"] = []
    past: List["AnyEntity"] = []
    for appointment in collection:
        if appointment.scheduled_at > now and appointment.status != AppointmentStatus.CANCELLED:
            upcoming.append(appointment)
        else:
            past.append(appointment)
    return upcoming, past


def apply_sort(
    collection: Sequence["AnyEntity"],
    spec: SortSpec,
    kind: "EntityKind",
    now: Optional[datetime] = None,
) -> List["AnyEntity"]:
    if kind.schedule_field and spec.field == kind.schedule_field:
        return appointment_order(collection, now)
    return sort_by_field(collection, spec)


# ----------------------------------------------------------------------
# Pagination
# ----------------------------------------------------------------------
def paginate(items: Sequence["AnyEntity"], page: int, page_size: int) -> VisibleWindow:
    page_size = max(1, int(page_size))
    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    page = max(1, min(int(page), max(total_pages, 1)))
    start = (page - 1) * page_size
    return VisibleWindow(
        items=tuple(items[start : start + page_size]),
        total_items=total_items,
        total_pages=total_pages,
        page=page,
        page_size=page_size,
    )


def visible_window(
    collection: Sequence["AnyEntity"],
    filters: FilterCriteria,
    sort: SortSpec,
    page: int,
    page_size: int,
    *,
    kind: "EntityKind",
    now: Optional[datetime] = None,
) -> VisibleWindow:
    """Filter, sort and slice ``collection`` into the window a list screen shows."""

    filtered = apply_filters(collection, filters, kind)
    ordered = apply_sort(filtered, sort, kind, now)
    return paginate(ordered, page, page_size)


__all__ = [
    "SortOrder",
    "SortSpec",
    "FilterCriteria",
    "VisibleWindow",
    "matches",
    "apply_filters",
    "sort_by_field",
    "appointment_order",
    "partition_upcoming",
    "apply_sort",
    "paginate",
    "visible_window",
]
