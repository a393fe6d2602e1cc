"""Status enumerations and lifecycle state machines for each entity kind.

The store itself only guarantees that ``status`` holds a member of the kind's
enumeration.  Whether a particular move is legal is decided here and checked
by the workflows before a request leaves for the remote service.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Type, Union


class CaseStatus(str, Enum):
    """Lifecycle status of a medical Case."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CLOSED = "closed"


class AppointmentStatus(str, Enum):
    """Lifecycle status of a consultation Appointment."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    PAYMENT_PENDING = "payment_pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    """Lifecycle status of a Payment."""

    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


StatusEnum = Type[Enum]
AnyStatus = Union[CaseStatus, AppointmentStatus, PaymentStatus]


def _edges(pairs: Mapping[Enum, tuple]) -> Dict[Enum, FrozenSet[Enum]]:
    return {source: frozenset(targets) for source, targets in pairs.items()}


CASE_TRANSITIONS = _edges(
    {
        CaseStatus.SUBMITTED: (CaseStatus.PENDING, CaseStatus.ASSIGNED, CaseStatus.REJECTED),
        CaseStatus.PENDING: (CaseStatus.ASSIGNED, CaseStatus.REJECTED),
        CaseStatus.ASSIGNED: (CaseStatus.ACCEPTED, CaseStatus.REJECTED),
        CaseStatus.ACCEPTED: (CaseStatus.SCHEDULED,),
        CaseStatus.SCHEDULED: (CaseStatus.IN_PROGRESS,),
        CaseStatus.IN_PROGRESS: (CaseStatus.COMPLETED,),
        CaseStatus.COMPLETED: (),
        CaseStatus.REJECTED: (),
        CaseStatus.CLOSED: (),
    }
)

APPOINTMENT_TRANSITIONS = _edges(
    {
        AppointmentStatus.SCHEDULED: (
            AppointmentStatus.PAYMENT_PENDING,
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
        ),
        AppointmentStatus.PAYMENT_PENDING: (
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        ),
        AppointmentStatus.CONFIRMED: (
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
        ),
        AppointmentStatus.RESCHEDULED: (
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        ),
        AppointmentStatus.IN_PROGRESS: (
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        ),
        AppointmentStatus.COMPLETED: (),
        AppointmentStatus.CANCELLED: (),
        AppointmentStatus.NO_SHOW: (),
    }
)

PAYMENT_TRANSITIONS = _edges(
    {
        PaymentStatus.PENDING: (PaymentStatus.COMPLETED,),
        PaymentStatus.COMPLETED: (PaymentStatus.REFUNDED,),
        PaymentStatus.REFUNDED: (),
    }
)

_MACHINES: Dict[type, Dict[Enum, FrozenSet[Enum]]] = {
    CaseStatus: CASE_TRANSITIONS,
    AppointmentStatus: APPOINTMENT_TRANSITIONS,
    PaymentStatus: PAYMENT_TRANSITIONS,
}


def coerce_status(enum_cls: StatusEnum, value: Union[str, Enum, None]) -> Optional[Enum]:
    """Return ``value`` as a member of ``enum_cls`` or ``None`` when unknown.

    Accepts enum members, their values and upper-case member names so that
    ``"IN_PROGRESS"``, ``"in_progress"`` and ``CaseStatus.IN_PROGRESS`` agree.
    """

    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    text = value.value if isinstance(value, Enum) else str(value)
    try:
        return enum_cls(text)
    except ValueError:
        pass
    try:
        return enum_cls[text.upper()]
    except KeyError:
        return None


def allowed_targets(status: Enum) -> FrozenSet[Enum]:
    return _MACHINES[type(status)].get(status, frozenset())


def is_terminal(status: Enum) -> bool:
    return not allowed_targets(status)


def can_transition(previous: Enum, new: Enum) -> bool:
    """Return ``True`` when ``previous -> new`` is an edge of the state machine."""

    if type(previous) is not type(new):
        return False
    return new in allowed_targets(previous)


__all__ = [
    "CaseStatus",
    "AppointmentStatus",
    "PaymentStatus",
    "AnyStatus",
    "CASE_TRANSITIONS",
    "APPOINTMENT_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "coerce_status",
    "allowed_targets",
    "is_terminal",
    "can_transition",
]
