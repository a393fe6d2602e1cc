"""Interfaces of the remote services the workflows talk to.

The stores never call these directly.  Concrete HTTP clients live with the
console front-end; tests use small in-memory fakes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from consult_store.kinds import EntityKind


class EntityService(Protocol):
    async def list(self, **params: Any) -> Mapping[str, Any]:
        ...

    async def get(self, entity_id: str) -> Mapping[str, Any]:
        ...

    async def create(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    async def update(self, entity_id: str, fields: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        ...

    async def update_status(
        self, entity_id: str, status: str, **details: Any
    ) -> Optional[Mapping[str, Any]]:
        ...


class CaseService(EntityService, Protocol):
    async def upload_document(self, case_id: str, document: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    async def delete_document(self, case_id: str, document_id: str) -> None:
        ...

    async def add_note(self, case_id: str, note: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    async def delete_note(self, case_id: str, note_id: str) -> None:
        ...


AppointmentService = EntityService
PaymentService = EntityService


class FetchResult(BaseModel):
    """A full-collection fetch.

    ``statistics`` is authoritative when present; ``None`` means the service
    sent none and the store keeps the counters it has.
    """

    model_config = ConfigDict(frozen=True)

    entities: List[Dict[str, Any]] = Field(default_factory=list)
    statistics: Optional[Dict[str, Union[int, float]]] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], kind: EntityKind) -> "FetchResult":
        """Accept ``{"entities": ...}`` or the kind's own key (``{"cases": ...}``)."""

        entities = payload.get("entities")
        if entities is None:
            entities = payload.get(kind.name, [])
        statistics = payload.get("statistics")
        return cls(
            entities=list(entities or []),
            statistics=dict(statistics) if statistics is not None else None,
        )


class TransitionRequest(BaseModel):
    """A user-triggered status change."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    new_status: str = Field(..., alias="newStatus")
    previous_status: Optional[str] = Field(None, alias="previousStatus")

    @field_validator("id", "new_status", "previous_status", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:  # noqa: N805
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, int):
            return str(value)
        return value


__all__ = [
    "EntityService",
    "CaseService",
    "AppointmentService",
    "PaymentService",
    "FetchResult",
    "TransitionRequest",
]
