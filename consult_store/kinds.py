"""Per-kind configuration shared by the reducer, the views and the workflows."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional, Tuple, Type, Union

from consult_store.models import (
    AnyEntity,
    Appointment,
    AppointmentPatch,
    Case,
    CasePatch,
    EntityPatch,
    Payment,
    PaymentPatch,
    SUB_COLLECTION_FIELDS,
)
from consult_store.statistics import MONEY_BUCKETS, StatusStatistics
from consult_store.statuses import AppointmentStatus, CaseStatus, PaymentStatus, coerce_status
from consult_store.views import SortOrder, SortSpec


@dataclass(frozen=True)
class EntityKind:
    """Everything that differs between the Case, Appointment and Payment stores."""

    name: str
    model: Type[AnyEntity]
    patch_model: Type[EntityPatch]
    status_enum: Type[Enum]
    initial_status: Enum
    default_sort: SortSpec
    date_field: str
    search_fields: Tuple[str, ...]
    priority_field: Optional[str] = None
    schedule_field: Optional[str] = None
    sub_collections: FrozenSet[str] = frozenset()
    tracks_amounts: bool = False

    def coerce_status(self, value: Union[str, Enum, None]) -> Optional[Enum]:
        return coerce_status(self.status_enum, value)

    def validate(self, payload: Union[AnyEntity, Mapping[str, Any]]) -> AnyEntity:
        if isinstance(payload, self.model):
            return payload
        return self.model.model_validate(payload)

    def make_patch(self, fields: Union[EntityPatch, Mapping[str, Any], None]) -> EntityPatch:
        if fields is None:
            return self.patch_model()
        if isinstance(fields, self.patch_model):
            return fields
        if isinstance(fields, EntityPatch):
            fields = fields.changes()
        return self.patch_model.model_validate(fields)

    def empty_statistics(self) -> StatusStatistics:
        return StatusStatistics.empty(
            self.status_enum, MONEY_BUCKETS if self.tracks_amounts else ()
        )


CASES = EntityKind(
    name="cases",
    model=Case,
    patch_model=CasePatch,
    status_enum=CaseStatus,
    initial_status=CaseStatus.SUBMITTED,
    default_sort=SortSpec(field="created_at", order=SortOrder.DESC),
    date_field="created_at",
    search_fields=("id", "title", "specialization", "urgency_level"),
    priority_field="urgency_level",
    sub_collections=SUB_COLLECTION_FIELDS,
)

APPOINTMENTS = EntityKind(
    name="appointments",
    model=Appointment,
    patch_model=AppointmentPatch,
    status_enum=AppointmentStatus,
    initial_status=AppointmentStatus.SCHEDULED,
    default_sort=SortSpec(field="scheduled_at", order=SortOrder.ASC),
    date_field="scheduled_at",
    search_fields=("id", "doctor_id", "patient_id", "consultation_type", "specialization"),
    schedule_field="scheduled_at",
)

PAYMENTS = EntityKind(
    name="payments",
    model=Payment,
    patch_model=PaymentPatch,
    status_enum=PaymentStatus,
    initial_status=PaymentStatus.PENDING,
    default_sort=SortSpec(field="created_at", order=SortOrder.DESC),
    date_field="created_at",
    search_fields=("id", "type", "refund_reason"),
    tracks_amounts=True,
)


__all__ = ["EntityKind", "CASES", "APPOINTMENTS", "PAYMENTS"]
