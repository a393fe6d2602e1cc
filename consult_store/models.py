"""Pydantic schemas for the entities held by the store.

Entities are immutable: every change goes through :func:`merge_fields` and
yields a fresh, re-validated instance.  Field names are snake_case; the
camelCase spelling used by the remote services is accepted through aliases
and unknown service fields are preserved as extras.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel, to_snake

from consult_store.statuses import AppointmentStatus, CaseStatus, PaymentStatus, coerce_status
from consult_store.time_utils import ensure_utc

SUB_COLLECTION_FIELDS: FrozenSet[str] = frozenset({"documents", "notes"})


def _coerce_id(value: Any) -> str:
    if value is None or value == "":
        raise ValueError("id is required")
    return str(value)


class SubItem(BaseModel):
    """A document or note attached to a parent entity."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:  # noqa: N805
        return _coerce_id(value)


class Entity(BaseModel):
    """Fields shared by every entity kind."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    status_enum: ClassVar[type] = CaseStatus

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:  # noqa: N805
        return _coerce_id(value)

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _known_status(cls, value: Any) -> Any:  # noqa: N805
        status = coerce_status(cls.status_enum, value)
        if status is None:
            raise ValueError(f"unknown {cls.__name__.lower()} status {value!r}")
        return status

    @field_validator("*", mode="after")
    @classmethod
    def _utc_datetimes(cls, value: Any) -> Any:  # noqa: N805
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value


class Case(Entity):
    status_enum: ClassVar[type] = CaseStatus

    status: CaseStatus = CaseStatus.SUBMITTED
    title: Optional[str] = None
    urgency_level: Optional[str] = None
    complexity: Optional[str] = None
    specialization: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    documents: Tuple[SubItem, ...] = ()
    notes: Tuple[SubItem, ...] = ()
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    @field_validator("documents", "notes", mode="before")
    @classmethod
    def _missing_list_is_empty(cls, value: Any) -> Any:  # noqa: N805
        return () if value is None else value


class Appointment(Entity):
    status_enum: ClassVar[type] = AppointmentStatus

    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    scheduled_at: datetime
    duration: int = 30
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    consultation_type: Optional[str] = None
    specialization: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_id: Optional[str] = None
    meeting_password: Optional[str] = None
    rescheduled_at: Optional[datetime] = None
    reschedule_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    consultation_notes: Optional[str] = None
    follow_up_required: Optional[bool] = None
    no_show_at: Optional[datetime] = None


class Payment(Entity):
    status_enum: ClassVar[type] = PaymentStatus

    status: PaymentStatus = PaymentStatus.PENDING
    amount: float = Field(0.0, ge=0)
    type: Optional[str] = None
    refunded_amount: Optional[float] = Field(None, ge=0)
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None


AnyEntity = Union[Case, Appointment, Payment]


# ----------------------------------------------------------------------
# Patches
# ----------------------------------------------------------------------
class EntityPatch(BaseModel):
    """Partial field update for one entity.

    Only supplied fields are applied.  Identity, status and sub-collections
    cannot be patched: status moves through transitions so that statistics
    stay in step, and documents/notes move through the sub-collection
    actions.  Fields the entity requires cannot be cleared to ``None``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    forbidden_fields: ClassVar[FrozenSet[str]] = frozenset({"id", "status"}) | SUB_COLLECTION_FIELDS
    required_fields: ClassVar[FrozenSet[str]] = frozenset()

    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _reject_protected_fields(cls, data: Any) -> Any:  # noqa: N805
        if isinstance(data, Mapping):
            blocked = sorted(
                key for key in data if to_snake(str(key)) in cls.forbidden_fields
            )
            if blocked:
                raise ValueError(f"cannot patch protected field(s): {', '.join(blocked)}")
            cleared = sorted(
                key
                for key, value in data.items()
                if value is None and to_snake(str(key)) in cls.required_fields
            )
            if cleared:
                raise ValueError(f"cannot clear required field(s): {', '.join(cleared)}")
        return data

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the caller actually supplied."""

        data = self.model_dump(exclude_unset=True)
        data.update(self.model_extra or {})
        return data


class CasePatch(EntityPatch):
    title: Optional[str] = None
    urgency_level: Optional[str] = None
    complexity: Optional[str] = None
    specialization: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None


class AppointmentPatch(EntityPatch):
    required_fields: ClassVar[FrozenSet[str]] = frozenset({"scheduled_at", "duration"})

    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = None
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    consultation_type: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_id: Optional[str] = None
    meeting_password: Optional[str] = None
    rescheduled_at: Optional[datetime] = None
    reschedule_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    consultation_notes: Optional[str] = None
    follow_up_required: Optional[bool] = None
    no_show_at: Optional[datetime] = None


class PaymentPatch(EntityPatch):
    required_fields: ClassVar[FrozenSet[str]] = frozenset({"amount"})

    amount: Optional[float] = Field(None, ge=0)
    type: Optional[str] = None
    refunded_amount: Optional[float] = Field(None, ge=0)
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None


def merge_fields(entity: AnyEntity, changes: Mapping[str, Any]) -> AnyEntity:
    """Shallow-merge ``changes`` into ``entity`` and re-validate the result."""

    if not changes:
        return entity
    data = entity.model_dump()
    data.update(changes)
    return type(entity).model_validate(data)


__all__ = [
    "SUB_COLLECTION_FIELDS",
    "SubItem",
    "Entity",
    "Case",
    "Appointment",
    "Payment",
    "AnyEntity",
    "EntityPatch",
    "CasePatch",
    "AppointmentPatch",
    "PaymentPatch",
    "merge_fields",
]
