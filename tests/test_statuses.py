import pytest

from consult_store.statuses import (
    APPOINTMENT_TRANSITIONS,
    AppointmentStatus,
    CaseStatus,
    PaymentStatus,
    allowed_targets,
    can_transition,
    coerce_status,
    is_terminal,
)


@pytest.mark.parametrize(
    "value",
    ["in_progress", "IN_PROGRESS", CaseStatus.IN_PROGRESS, AppointmentStatus.IN_PROGRESS],
)
def test_status_spellings_agree(value):
    assert coerce_status(CaseStatus, value) is CaseStatus.IN_PROGRESS


@pytest.mark.parametrize("value", [None, "", "archived"])
def test_unknown_status_is_none(value):
    assert coerce_status(CaseStatus, value) is None


def test_case_lifecycle():
    path = [
        CaseStatus.SUBMITTED,
        CaseStatus.PENDING,
        CaseStatus.ASSIGNED,
        CaseStatus.ACCEPTED,
        CaseStatus.SCHEDULED,
        CaseStatus.IN_PROGRESS,
        CaseStatus.COMPLETED,
    ]
    for previous, new in zip(path, path[1:]):
        assert can_transition(previous, new)
    assert not can_transition(CaseStatus.PENDING, CaseStatus.COMPLETED)
    assert not can_transition(CaseStatus.COMPLETED, CaseStatus.PENDING)


def test_every_open_appointment_can_be_cancelled():
    for status in APPOINTMENT_TRANSITIONS:
        if is_terminal(status):
            continue
        assert can_transition(status, AppointmentStatus.CANCELLED), status


def test_terminal_statuses():
    assert is_terminal(CaseStatus.REJECTED)
    assert is_terminal(AppointmentStatus.NO_SHOW)
    assert is_terminal(PaymentStatus.REFUNDED)
    assert allowed_targets(PaymentStatus.PENDING) == {PaymentStatus.COMPLETED}


def test_moves_never_cross_kinds():
    assert not can_transition(CaseStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS)
