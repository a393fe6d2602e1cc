import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest

# Ensure the repository root is on sys.path so tests can import the package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from consult_store.config import StoreSettings, get_store_settings
from consult_store.kinds import APPOINTMENTS, CASES, PAYMENTS
from consult_store.store import EntityStore


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_store_settings.cache_clear()
    yield
    get_store_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings() -> StoreSettings:
    return StoreSettings(page_size=10)


@pytest.fixture
def case_store(settings) -> EntityStore:
    return EntityStore(CASES, settings=settings)


@pytest.fixture
def appointment_store(settings) -> EntityStore:
    return EntityStore(APPOINTMENTS, settings=settings)


@pytest.fixture
def payment_store(settings) -> EntityStore:
    return EntityStore(PAYMENTS, settings=settings)


def make_case(case_id: str, status: str = "pending", **fields: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": case_id,
        "status": status,
        "createdAt": (NOW - timedelta(days=1)).isoformat(),
        "urgencyLevel": "medium",
        "complexity": "simple",
        "documents": [],
        "notes": [],
    }
    data.update(fields)
    return data


def make_appointment(appointment_id: str, scheduled_at: datetime, status: str = "scheduled", **fields: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": appointment_id,
        "status": status,
        "scheduledAt": scheduled_at.isoformat(),
        "duration": 30,
        "createdAt": (NOW - timedelta(days=7)).isoformat(),
    }
    data.update(fields)
    return data


def make_payment(payment_id: str, amount: float, status: str = "pending", **fields: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": payment_id,
        "status": status,
        "amount": amount,
        "createdAt": (NOW - timedelta(hours=2)).isoformat(),
    }
    data.update(fields)
    return data


class FakeService:
    """In-memory stand-in for a remote entity service."""

    def __init__(self, listing: Optional[Mapping[str, Any]] = None) -> None:
        self.listing = listing or {"entities": [], "statistics": {}}
        self.entities: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None
        self._next_id = 100

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def list(self, **params: Any) -> Mapping[str, Any]:
        self.calls.append(("list", params))
        self._maybe_fail()
        return self.listing

    async def get(self, entity_id: str) -> Mapping[str, Any]:
        self.calls.append(("get", entity_id))
        self._maybe_fail()
        return self.entities[entity_id]

    async def create(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("create", dict(payload)))
        self._maybe_fail()
        self._next_id += 1
        created = {"id": str(self._next_id), "createdAt": NOW.isoformat(), **payload}
        self.entities[created["id"]] = created
        return created

    async def update(self, entity_id: str, fields: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("update", entity_id, dict(fields)))
        self._maybe_fail()
        return {"id": entity_id, **fields}

    async def update_status(self, entity_id: str, status: str, **details: Any) -> Mapping[str, Any]:
        self.calls.append(("update_status", entity_id, status, details))
        self._maybe_fail()
        return {"id": entity_id, "status": status}

    async def upload_document(self, case_id: str, document: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("upload_document", case_id, dict(document)))
        self._maybe_fail()
        self._next_id += 1
        return {"id": f"doc-{self._next_id}", **document}

    async def delete_document(self, case_id: str, document_id: str) -> None:
        self.calls.append(("delete_document", case_id, document_id))
        self._maybe_fail()

    async def add_note(self, case_id: str, note: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("add_note", case_id, dict(note)))
        self._maybe_fail()
        self._next_id += 1
        return {"id": f"note-{self._next_id}", **note}

    async def delete_note(self, case_id: str, note_id: str) -> None:
        self.calls.append(("delete_note", case_id, note_id))
        self._maybe_fail()


@pytest.fixture
def fake_service() -> FakeService:
    return FakeService()
