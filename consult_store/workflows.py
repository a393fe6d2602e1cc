"""Asynchronous workflows that connect remote services to the stores.

Every workflow follows the same three steps: ``RequestStarted`` flips a busy
flag, the remote call runs, then ``RequestSucceeded`` (carrying the store
action that applies the result) or ``RequestFailed`` (carrying one readable
message) clears it.  Validation problems land in the same error slot as
remote failures.  There is no in-flight guard and no cancellation: two
overlapping fetches both apply, the later one wins.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

import structlog

from consult_store.actions import (
    Action,
    AddSubItem,
    Append,
    Patch,
    RemoveSubItem,
    ReplaceAll,
    RequestFailed,
    RequestKind,
    RequestStarted,
    RequestSucceeded,
    SetFocus,
    Transition,
)
from consult_store.collection import patched, transitioned
from consult_store.errors import ConsultStoreError, EntityNotFoundError, InvalidTransitionError
from consult_store.kinds import EntityKind
from consult_store.models import AnyEntity, SubItem
from consult_store.observability import REQUEST_FAILURES
from consult_store.services import CaseService, EntityService, FetchResult, TransitionRequest
from consult_store.statuses import AppointmentStatus, CaseStatus, PaymentStatus, can_transition
from consult_store.store import EntityStore
from consult_store.time_utils import ensure_utc, parse_instant, utc_now

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
ResultBuilder = Callable[[Any], Optional[Action]]
Prepared = Tuple[Dict[str, Any], Dict[str, Any]]
Prepare = Callable[[AnyEntity], Prepared]


def _message(exc: Exception) -> str:
    text = str(exc).strip()
    return text or exc.__class__.__name__


def _no_extras(_entity: AnyEntity) -> Prepared:
    return {}, {}


class EntityWorkflows:
    """Workflows shared by all three entity kinds."""

    def __init__(self, store: EntityStore, service: EntityService, *, clock: Clock = utc_now) -> None:
        self.store = store
        self.service = service
        self.clock = clock

    @property
    def kind(self) -> EntityKind:
        return self.store.kind

    @property
    def _label(self) -> str:
        return self.kind.name.rstrip("s")

    async def _run(
        self,
        request: RequestKind,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        build: ResultBuilder,
    ) -> bool:
        """Run ``call`` between the start and terminal actions; return success.

        A result the store refuses to apply ends the request the same way a
        remote failure does.
        """

        self.store.dispatch(RequestStarted(request))
        try:
            payload = await call()
            action = build(payload)
            self.store.dispatch(RequestSucceeded(request, action))
        except Exception as exc:
            message = _message(exc)
            REQUEST_FAILURES.labels(kind=self.kind.name, request=operation).inc()
            logger.warning(
                "request_failed",
                kind=self.kind.name,
                operation=operation,
                error=message,
                error_type=exc.__class__.__name__,
            )
            self.store.dispatch(RequestFailed(request, message))
            return False
        logger.info("request_succeeded", kind=self.kind.name, operation=operation)
        return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _known(self, entity_id: str) -> AnyEntity:
        """Return the focused copy or the collection entry for ``entity_id``."""

        entity_id = str(entity_id)
        current = self.store.current
        if current is not None and current.id == entity_id:
            return current
        entity = self.store.get(entity_id)
        if entity is None:
            raise EntityNotFoundError(f"{self._label.capitalize()} {entity_id} is not loaded")
        return entity

    def _loaded(self, entity_id: str) -> Optional[AnyEntity]:
        try:
            return self._known(entity_id)
        except EntityNotFoundError:
            return None

    def _status_of(self, entity_id: str) -> Optional[Enum]:
        entity = self._loaded(entity_id)
        return entity.status if entity is not None else None

    def _check_move(self, previous: Optional[Enum], new: Enum) -> None:
        if previous is not None and not can_transition(previous, new):
            raise InvalidTransitionError(self._label, previous, new)

    async def _transition_to(
        self,
        entity_id: str,
        new_status: Enum,
        operation: str,
        prepare: Prepare = _no_extras,
    ) -> bool:
        """Move a loaded entity to ``new_status`` through the remote service.

        ``prepare`` receives the entity before the move and returns the fields
        to record with the transition and the details to send to the service.
        It may raise to reject the request.
        """

        prepared: Dict[str, Any] = {}

        async def call() -> Any:
            entity = self._known(entity_id)
            self._check_move(entity.status, new_status)
            fields, details = prepare(entity)
            transitioned(entity, new_status, self.clock(), self.kind.make_patch(fields).changes())
            prepared.update(previous=entity.status, fields=fields)
            return await self.service.update_status(entity.id, new_status.value, **details)

        def build(_payload: Any) -> Action:
            return Transition(
                str(entity_id),
                new_status,
                prepared["previous"],
                fields=prepared["fields"],
                at=self.clock(),
            )

        return await self._run(RequestKind.UPDATE, operation, call, build)

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------
    async def fetch_all(self, **params: Any) -> bool:
        """Replace the collection and statistics with a fresh fetch."""

        def build(payload: Mapping[str, Any]) -> Action:
            result = FetchResult.from_payload(payload or {}, self.kind)
            entities = tuple(self.kind.validate(item) for item in result.entities)
            return ReplaceAll(entities, result.statistics)

        return await self._run(RequestKind.FETCH, "fetch_all", lambda: self.service.list(**params), build)

    async def load(self, entity_id: str) -> bool:
        """Fetch one entity and focus it for a detail view."""

        return await self._run(
            RequestKind.FETCH,
            "load",
            lambda: self.service.get(str(entity_id)),
            lambda payload: SetFocus(self.kind.validate(payload)),
        )

    async def create(self, payload: Mapping[str, Any], *, operation: str = "create") -> bool:
        """Create an entity remotely and prepend the stored version."""

        def build(created: Mapping[str, Any]) -> Action:
            data = dict(created or {})
            data.setdefault("status", self.kind.initial_status)
            return Append(self.kind.validate(data))

        return await self._run(RequestKind.SUBMIT, operation, lambda: self.service.create(payload), build)

    async def update_details(self, entity_id: str, fields: Mapping[str, Any]) -> bool:
        """Send a partial update and merge it into the collection and the mirror."""

        async def call() -> Any:
            patch = self.kind.make_patch(fields)
            loaded = self._loaded(entity_id)
            if loaded is not None:
                patched(loaded, patch)
            await self.service.update(str(entity_id), patch.changes())
            return patch

        return await self._run(
            RequestKind.UPDATE,
            "update_details",
            call,
            lambda patch: Patch(str(entity_id), patch),
        )

    async def change_status(self, request: Union[TransitionRequest, Mapping[str, Any]]) -> bool:
        """Apply a user-triggered ``{id, newStatus, previousStatus}`` request.

        The caller's ``previousStatus`` is what the statistics are told; when
        it is missing only the increment half happens, as the aggregator
        documents.
        """

        resolved: Dict[str, Any] = {}

        async def call() -> Any:
            req = (
                request
                if isinstance(request, TransitionRequest)
                else TransitionRequest.model_validate(request)
            )
            new_status = self.kind.coerce_status(req.new_status)
            if new_status is None:
                raise ValueError(f"Unknown {self._label} status {req.new_status!r}")
            previous = self.kind.coerce_status(req.previous_status)
            if req.previous_status is not None and previous is None:
                raise ValueError(f"Unknown {self._label} status {req.previous_status!r}")
            self._check_move(previous or self._status_of(req.id), new_status)
            resolved.update(id=req.id, new=new_status, previous=previous)
            return await self.service.update_status(req.id, new_status.value)

        def build(_payload: Any) -> Action:
            return Transition(resolved["id"], resolved["new"], resolved["previous"], at=self.clock())

        return await self._run(RequestKind.UPDATE, "change_status", call, build)


class CaseWorkflows(EntityWorkflows):
    """Case submission, doctor decisions and the document/note lists."""

    service: CaseService

    async def submit(self, payload: Mapping[str, Any]) -> bool:
        return await self.create(payload, operation="submit_case")

    async def accept(self, case_id: str, doctor_id: str) -> bool:
        def prepare(_case: AnyEntity) -> Prepared:
            fields = {"assigned_doctor_id": str(doctor_id), "accepted_at": self.clock()}
            return fields, {"doctor_id": str(doctor_id)}

        return await self._transition_to(case_id, CaseStatus.ACCEPTED, "accept_case", prepare)

    async def reject(self, case_id: str, reason: str) -> bool:
        def prepare(_case: AnyEntity) -> Prepared:
            if not reason or not reason.strip():
                raise ValueError("A rejection reason is required")
            fields = {"rejection_reason": reason.strip(), "rejected_at": self.clock()}
            return fields, {"reason": reason.strip()}

        return await self._transition_to(case_id, CaseStatus.REJECTED, "reject_case", prepare)

    async def add_document(self, case_id: str, document: Mapping[str, Any]) -> bool:
        return await self._run(
            RequestKind.UPDATE,
            "add_document",
            lambda: self.service.upload_document(str(case_id), document),
            lambda stored: AddSubItem(str(case_id), "documents", SubItem.model_validate(stored)),
        )

    async def remove_document(self, case_id: str, document_id: str) -> bool:
        return await self._run(
            RequestKind.UPDATE,
            "remove_document",
            lambda: self.service.delete_document(str(case_id), str(document_id)),
            lambda _: RemoveSubItem(str(case_id), "documents", str(document_id)),
        )

    async def add_note(self, case_id: str, note: Mapping[str, Any]) -> bool:
        return await self._run(
            RequestKind.UPDATE,
            "add_note",
            lambda: self.service.add_note(str(case_id), note),
            lambda stored: AddSubItem(str(case_id), "notes", SubItem.model_validate(stored)),
        )

    async def remove_note(self, case_id: str, note_id: str) -> bool:
        return await self._run(
            RequestKind.UPDATE,
            "remove_note",
            lambda: self.service.delete_note(str(case_id), str(note_id)),
            lambda _: RemoveSubItem(str(case_id), "notes", str(note_id)),
        )


class AppointmentWorkflows(EntityWorkflows):
    """Scheduling and the appointment lifecycle."""

    async def schedule(self, payload: Mapping[str, Any]) -> bool:
        return await self.create(payload, operation="schedule_appointment")

    async def reschedule(
        self, appointment_id: str, scheduled_at: Union[datetime, str], reason: str
    ) -> bool:
        def prepare(_appointment: AnyEntity) -> Prepared:
            new_time = parse_instant(scheduled_at)
            if new_time is None:
                raise ValueError("A new appointment time is required")
            fields = {
                "scheduled_at": new_time,
                "rescheduled_at": self.clock(),
                "reschedule_reason": reason,
            }
            return fields, {"scheduled_at": new_time.isoformat(), "reason": reason}

        return await self._transition_to(
            appointment_id, AppointmentStatus.RESCHEDULED, "reschedule_appointment", prepare
        )

    async def confirm(self, appointment_id: str) -> bool:
        return await self._transition_to(
            appointment_id, AppointmentStatus.CONFIRMED, "confirm_appointment"
        )

    async def cancel(self, appointment_id: str, reason: str, cancelled_by: Optional[str] = None) -> bool:
        def prepare(_appointment: AnyEntity) -> Prepared:
            fields = {
                "cancelled_at": self.clock(),
                "cancellation_reason": reason,
                "cancelled_by": cancelled_by,
            }
            return fields, {"reason": reason, "cancelled_by": cancelled_by}

        return await self._transition_to(
            appointment_id, AppointmentStatus.CANCELLED, "cancel_appointment", prepare
        )

    async def start(self, appointment_id: str) -> bool:
        return await self._transition_to(
            appointment_id, AppointmentStatus.IN_PROGRESS, "start_appointment"
        )

    async def complete(
        self, appointment_id: str, notes: Optional[str] = None, follow_up_required: bool = False
    ) -> bool:
        def prepare(_appointment: AnyEntity) -> Prepared:
            fields = {
                "completed_at": self.clock(),
                "consultation_notes": notes,
                "follow_up_required": follow_up_required,
            }
            return fields, {"notes": notes, "follow_up_required": follow_up_required}

        return await self._transition_to(
            appointment_id, AppointmentStatus.COMPLETED, "complete_appointment", prepare
        )

    async def mark_no_show(self, appointment_id: str) -> bool:
        """Only a confirmed appointment whose window has fully passed can be a no-show."""

        def prepare(appointment: AnyEntity) -> Prepared:
            now = self.clock()
            window_end = ensure_utc(appointment.scheduled_at) + timedelta(minutes=appointment.duration)
            if window_end > now:
                raise ConsultStoreError(f"Appointment {appointment.id} has not ended yet")
            return {"no_show_at": now}, {}

        return await self._transition_to(
            appointment_id, AppointmentStatus.NO_SHOW, "mark_no_show", prepare
        )

    async def set_meeting_details(
        self,
        appointment_id: str,
        meeting_link: str,
        meeting_id: Optional[str] = None,
        meeting_password: Optional[str] = None,
    ) -> bool:
        return await self.update_details(
            appointment_id,
            {
                "meeting_link": meeting_link,
                "meeting_id": meeting_id,
                "meeting_password": meeting_password,
            },
        )


class PaymentWorkflows(EntityWorkflows):
    """Payment processing and refunds."""

    async def process(self, payload: Mapping[str, Any]) -> bool:
        return await self.create(payload, operation="process_payment")

    async def refund(self, payment_id: str, reason: str, amount: Optional[float] = None) -> bool:
        """Refund all of a completed payment, or ``amount`` of it."""

        def prepare(payment: AnyEntity) -> Prepared:
            refunded = payment.amount if amount is None else float(amount)
            if refunded <= 0 or refunded > payment.amount:
                raise ValueError(
                    f"Refund amount must be more than 0 and at most {payment.amount:g}; got {refunded:g}"
                )
            fields = {
                "refunded_amount": refunded,
                "refund_reason": reason,
                "refunded_at": self.clock(),
            }
            return fields, {"amount": refunded, "reason": reason}

        return await self._transition_to(
            payment_id, PaymentStatus.REFUNDED, "refund_payment", prepare
        )


__all__ = [
    "EntityWorkflows",
    "CaseWorkflows",
    "AppointmentWorkflows",
    "PaymentWorkflows",
]
