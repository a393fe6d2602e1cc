"""Stateful store objects built around the pure reducer.

An :class:`EntityStore` owns one :class:`~consult_store.state.StoreState` and
applies actions to it one at a time, in arrival order.  Actions dispatched
while another is being applied (from a listener, or from another thread) are
queued and applied afterwards by the dispatcher already running.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Callable, Deque, Dict, List, Optional

import structlog

from consult_store.actions import Action, RequestKind
from consult_store.collection import Collection, find
from consult_store.config import StoreSettings, get_store_settings
from consult_store.kinds import APPOINTMENTS, CASES, PAYMENTS, EntityKind
from consult_store.models import AnyEntity
from consult_store.observability import ACTIONS_TOTAL
from consult_store.focus import live_focus
from consult_store.state import StoreState, initial_state, reduce
from consult_store.views import FilterCriteria, SortSpec, VisibleWindow, visible_window

logger = structlog.get_logger(__name__)

Listener = Callable[[StoreState, Action], None]


class EntityStore:
    """Serialised dispatcher and read-only selectors for one entity kind."""

    def __init__(
        self,
        kind: EntityKind,
        *,
        settings: Optional[StoreSettings] = None,
        state: Optional[StoreState] = None,
    ) -> None:
        settings = settings or get_store_settings()
        self.kind = kind
        self._state = state or initial_state(
            kind,
            page_size=settings.page_size,
            idempotent_statistics=settings.idempotent_statistics,
        )
        self._queue: Deque[Action] = deque()
        self._lock = Lock()
        self._draining = False
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, action: Action) -> None:
        """Queue ``action`` and apply everything queued, in order.

        An action the reducer rejects is dropped and leaves the state as it
        was; the rest of the queue is still applied.  The first error raised
        by the reducer or a listener is re-raised once the queue is empty, in
        the thread that drained it.
        """

        with self._lock:
            self._queue.append(action)
            if self._draining:
                return
            self._draining = True
        failure: Optional[Exception] = None
        while True:
            with self._lock:
                if not self._queue:
                    self._draining = False
                    break
                current = self._queue.popleft()
                try:
                    self._state = reduce(self._state, current)
                except Exception as exc:
                    logger.warning(
                        "store_action_rejected",
                        kind=self.kind.name,
                        action=type(current).__name__,
                        error=str(exc),
                    )
                    failure = failure or exc
                    continue
                snapshot = self._state
            ACTIONS_TOTAL.labels(kind=self.kind.name, action=type(current).__name__).inc()
            logger.debug(
                "store_action_applied",
                kind=self.kind.name,
                action=type(current).__name__,
                size=len(snapshot.collection),
            )
            for listener in list(self._listeners):
                try:
                    listener(snapshot, current)
                except Exception as exc:
                    logger.warning(
                        "store_listener_failed",
                        kind=self.kind.name,
                        action=type(current).__name__,
                        error=str(exc),
                    )
                    failure = failure or exc
        if failure is not None:
            raise failure

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state, action)`` after every applied action."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------------
    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def collection(self) -> Collection:
        return self._state.collection

    @property
    def current(self) -> Optional[AnyEntity]:
        return self._state.focus.current

    @property
    def live_current(self) -> Optional[AnyEntity]:
        return live_focus(self._state.collection, self._state.focus)

    @property
    def statistics(self) -> Dict[str, float]:
        return self._state.statistics.as_dict()

    @property
    def filters(self) -> FilterCriteria:
        return self._state.filters

    @property
    def sort(self) -> SortSpec:
        return self._state.sort

    @property
    def page(self) -> int:
        return self._state.page

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def is_loading(self) -> bool:
        return RequestKind.FETCH in self._state.busy

    @property
    def is_submitting(self) -> bool:
        return RequestKind.SUBMIT in self._state.busy

    @property
    def is_busy(self) -> bool:
        return bool(self._state.busy)

    @property
    def has_active_filters(self) -> bool:
        return self._state.filters.is_active()

    def get(self, entity_id: str) -> Optional[AnyEntity]:
        return find(self._state.collection, str(entity_id))

    def visible_window(self, now: Optional[datetime] = None) -> VisibleWindow:
        state = self._state
        return visible_window(
            state.collection,
            state.filters,
            state.sort,
            state.page,
            state.page_size,
            kind=self.kind,
            now=now,
        )


@dataclass
class ConsultStores:
    """The three stores a console session works with."""

    cases: EntityStore
    appointments: EntityStore
    payments: EntityStore


def create_stores(settings: Optional[StoreSettings] = None) -> ConsultStores:
    settings = settings or get_store_settings()
    return ConsultStores(
        cases=EntityStore(CASES, settings=settings),
        appointments=EntityStore(APPOINTMENTS, settings=settings),
        payments=EntityStore(PAYMENTS, settings=settings),
    )


__all__ = ["EntityStore", "ConsultStores", "create_stores", "Listener"]
