"""In-memory domain state for the consultation console."""

from __future__ import annotations

from .actions import (
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
from .config import StoreSettings, get_store_settings
from .kinds import APPOINTMENTS, CASES, PAYMENTS, EntityKind
from .models import Appointment, Case, Payment, SubItem
from .state import StoreState, initial_state, reduce
from .statuses import AppointmentStatus, CaseStatus, PaymentStatus
from .store import ConsultStores, EntityStore, create_stores

__all__ = [
    "Action",
    "AddSubItem",
    "Append",
    "BulkPatch",
    "ClearError",
    "ClearFilters",
    "ClearFocus",
    "MergeStatistics",
    "Patch",
    "RemoveSubItem",
    "ReplaceAll",
    "RequestFailed",
    "RequestKind",
    "RequestStarted",
    "RequestSucceeded",
    "Reset",
    "SetFilters",
    "SetFocus",
    "SetPage",
    "SetPageSize",
    "SetSearchTerm",
    "SetSort",
    "Transition",
    "StoreSettings",
    "get_store_settings",
    "EntityKind",
    "CASES",
    "APPOINTMENTS",
    "PAYMENTS",
    "Case",
    "Appointment",
    "Payment",
    "SubItem",
    "StoreState",
    "initial_state",
    "reduce",
    "CaseStatus",
    "AppointmentStatus",
    "PaymentStatus",
    "EntityStore",
    "ConsultStores",
    "create_stores",
]
