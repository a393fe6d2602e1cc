import threading
from datetime import timedelta

import pytest

from consult_store.actions import Append, ClearFilters, ReplaceAll, SetFilters, SetFocus, SetPage, Transition
from consult_store.config import StoreSettings
from consult_store.kinds import CASES
from consult_store.statuses import CaseStatus
from consult_store.store import EntityStore, create_stores

from conftest import NOW, make_appointment, make_case


def test_listeners_see_every_action_in_order(case_store):
    seen = []
    case_store.subscribe(lambda state, action: seen.append((type(action).__name__, len(state.collection))))

    case_store.dispatch(ReplaceAll([make_case("c1")], {"pending": 1}))
    case_store.dispatch(Append(make_case("c2")))

    assert seen == [("ReplaceAll", 1), ("Append", 2)]


def test_dispatch_from_a_listener_is_queued(case_store):
    seen = []

    def listener(state, action):
        seen.append((type(action).__name__, state.page))
        if isinstance(action, ReplaceAll):
            case_store.dispatch(SetPage(2))

    case_store.subscribe(listener)
    case_store.dispatch(ReplaceAll([make_case("c1")]))

    # the nested action is applied only after the first listener round returns
    assert seen == [("ReplaceAll", 1), ("SetPage", 2)]
    assert case_store.page == 2


def test_unsubscribe_stops_notifications(case_store):
    seen = []
    unsubscribe = case_store.subscribe(lambda state, action: seen.append(action))
    case_store.dispatch(SetPage(2))
    unsubscribe()
    case_store.dispatch(SetPage(3))
    assert len(seen) == 1


def test_reducer_errors_propagate_and_store_keeps_working(case_store):
    case_store.dispatch(ReplaceAll([make_case("c1")]))
    with pytest.raises(ValueError):
        case_store.dispatch(Transition("c1", "archived"))
    assert case_store.get("c1").status == CaseStatus.PENDING

    case_store.dispatch(Transition("c1", CaseStatus.ASSIGNED, CaseStatus.PENDING, at=NOW))
    assert case_store.get("c1").status == CaseStatus.ASSIGNED


def test_rejected_action_does_not_strand_the_queue(case_store):
    case_store.dispatch(ReplaceAll([make_case("c1")]))
    case_store.dispatch(SetPage(2))

    def listener(state, action):
        if isinstance(action, SetFilters):
            case_store.dispatch(Transition("c1", "archived"))
            case_store.dispatch(SetPage(5))

    case_store.subscribe(listener)
    with pytest.raises(ValueError):
        case_store.dispatch(SetFilters({"priority": "high"}))

    assert case_store.page == 5
    assert case_store.get("c1").status == CaseStatus.PENDING
    assert len(case_store._queue) == 0

    case_store.dispatch(SetPage(3))
    assert case_store.page == 3


def test_failing_listener_does_not_stop_the_drain(case_store):
    seen = []

    def failing(state, action):
        if isinstance(action, ReplaceAll):
            case_store.dispatch(SetPage(4))
            raise RuntimeError("listener broke")

    case_store.subscribe(failing)
    case_store.subscribe(lambda state, action: seen.append(type(action).__name__))

    with pytest.raises(RuntimeError, match="listener broke"):
        case_store.dispatch(ReplaceAll([make_case("c1")]))

    assert seen == ["ReplaceAll", "SetPage"]
    assert case_store.page == 4


def test_concurrent_dispatches_are_all_applied(case_store):
    def worker(offset):
        for n in range(25):
            case_store.dispatch(Append(make_case(f"c{offset}-{n}", status="submitted")))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(case_store.collection) == 100
    assert case_store.statistics["submitted"] == 100


def test_selectors(case_store):
    case_store.dispatch(ReplaceAll([make_case("c1"), make_case("c2")], {"pending": 2}))
    case_store.dispatch(SetFocus(make_case("c2")))

    assert case_store.get("c1").id == "c1"
    assert case_store.get("nope") is None
    assert case_store.current.id == "c2"
    assert case_store.live_current.id == "c2"
    assert case_store.is_loading is False
    assert case_store.is_submitting is False

    stats = case_store.statistics
    stats["pending"] = 99
    assert case_store.statistics["pending"] == 2


def test_live_focus_drops_entities_missing_from_the_collection(case_store):
    case_store.dispatch(SetFocus(make_case("c9")))
    case_store.dispatch(ReplaceAll([make_case("c1")]))
    assert case_store.current.id == "c9"
    assert case_store.live_current is None


def test_appointment_window_selector(appointment_store):
    appointment_store.dispatch(
        ReplaceAll(
            [
                make_appointment("past", NOW - timedelta(days=1)),
                make_appointment("next", NOW + timedelta(hours=1)),
            ]
        )
    )
    window = appointment_store.visible_window(now=NOW)
    assert [a.id for a in window.items] == ["next", "past"]
    assert window.total_items == 2


def test_page_size_comes_from_the_environment(monkeypatch):
    monkeypatch.setenv("CONSULT_STORE_PAGE_SIZE", "3")
    store = EntityStore(CASES)
    assert store.state.page_size == 3


def test_created_stores_are_independent():
    stores = create_stores(StoreSettings(page_size=5))
    stores.cases.dispatch(ReplaceAll([make_case("c1")], {"pending": 1}))

    assert len(stores.cases.collection) == 1
    assert stores.appointments.collection == ()
    assert stores.payments.collection == ()
    assert stores.payments.state.page_size == 5
    assert "totalPaid" in stores.payments.statistics
    assert "totalPaid" not in stores.cases.statistics


def test_active_filters_selector(case_store):
    assert case_store.has_active_filters is False

    case_store.dispatch(SetFilters({"status": "all", "priority": ""}))
    assert case_store.has_active_filters is False

    case_store.dispatch(SetFilters({"specialization": "Cardiology"}))
    assert case_store.has_active_filters is True

    case_store.dispatch(ClearFilters())
    assert case_store.has_active_filters is False
