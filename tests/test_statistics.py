from consult_store.statistics import (
    TOTAL_PAID,
    TOTAL_PENDING,
    TOTAL_REFUNDED,
    StatusStatistics,
    payment_created,
    payment_transitioned,
)
from consult_store.statuses import CaseStatus, PaymentStatus


def test_transition_moves_one_entity_between_buckets():
    stats = StatusStatistics({"pending": 2, "assigned": 0})
    moved = stats.on_transition("pending", "assigned")
    assert moved.count("pending") == 1
    assert moved.count("assigned") == 1
    # the input is untouched
    assert stats.count("pending") == 2


def test_decrement_is_floored_at_zero():
    stats = StatusStatistics({"pending": 0})
    moved = stats.on_transition(CaseStatus.PENDING, CaseStatus.ASSIGNED)
    assert moved.count("pending") == 0
    assert moved.count("assigned") == 1


def test_new_bucket_is_created_at_one():
    moved = StatusStatistics().on_transition("pending", "closed")
    assert moved.as_dict() == {"closed": 1}


def test_missing_previous_status_only_increments():
    stats = StatusStatistics({"pending": 1})
    moved = stats.on_transition(None, "assigned")
    assert moved.count("pending") == 1
    assert moved.count("assigned") == 1
    # one entity, two counted: the sum drifts until the next full fetch
    assert moved.status_total(CaseStatus) == 2


def test_double_reporting_one_change_double_counts():
    """A single real PENDING -> ASSIGNED change reported twice is counted twice.

    Collection truth after the change is pending=2, assigned=1; the counters
    end up with pending decremented by two and assigned incremented by two.
    """

    stats = StatusStatistics({"pending": 3, "assigned": 0})
    stats = stats.on_transition("pending", "assigned")
    stats = stats.on_transition("pending", "assigned")
    assert stats.count("pending") == 3 - 2
    assert stats.count("assigned") == 2
    assert stats.status_total(CaseStatus) == 3


def test_conservation_when_each_change_is_reported_once():
    collection = {"c1": "pending", "c2": "pending", "c3": "submitted"}
    stats = StatusStatistics.empty(CaseStatus)
    for status in collection.values():
        stats = stats.on_created(status)

    moves = [
        ("c1", "assigned"),
        ("c3", "rejected"),
        ("c1", "accepted"),
        ("c2", "assigned"),
        ("c1", "scheduled"),
    ]
    for entity_id, new in moves:
        stats = stats.on_transition(collection[entity_id], new)
        collection[entity_id] = new
        assert stats.status_total(CaseStatus) == len(collection)

    for status in set(collection.values()):
        assert stats.count(status) == list(collection.values()).count(status)


def test_snapshot_is_adopted_with_status_keys_normalised():
    snapshot = {"total": 5, "inProgress": 2, "PENDING": 3, "custom": 7}
    stats = StatusStatistics.from_snapshot(snapshot, CaseStatus)
    assert stats.as_dict() == {"total": 5, "in_progress": 2, "pending": 3, "custom": 7}
    assert stats.status_total(CaseStatus) == 5


def test_empty_statistics_lists_every_status():
    stats = StatusStatistics.empty(PaymentStatus, (TOTAL_PAID,))
    assert stats.as_dict() == {"pending": 0, "completed": 0, "refunded": 0, TOTAL_PAID: 0}


def test_payment_amount_buckets_follow_the_lifecycle():
    stats = StatusStatistics()
    stats = payment_created(stats, PaymentStatus.PENDING, 80.0)
    assert stats.count(TOTAL_PENDING) == 80.0

    stats = payment_transitioned(stats, PaymentStatus.PENDING, PaymentStatus.COMPLETED, 80.0)
    assert stats.count(TOTAL_PENDING) == 0
    assert stats.count(TOTAL_PAID) == 80.0

    stats = payment_transitioned(
        stats, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, 80.0, refunded_amount=30.0
    )
    assert stats.count(TOTAL_PAID) == 50.0
    assert stats.count(TOTAL_REFUNDED) == 30.0


def test_payment_refund_without_amount_refunds_everything():
    stats = payment_created(StatusStatistics(), PaymentStatus.COMPLETED, 100.0)
    stats = payment_transitioned(stats, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, 100.0)
    assert stats.count(TOTAL_PAID) == 0
    assert stats.count(TOTAL_REFUNDED) == 100.0


def test_merged_overlays_without_dropping_buckets():
    base = StatusStatistics({"pending": 3, "assigned": 1})
    merged = base.merged(StatusStatistics({"assigned": 5}))
    assert merged.as_dict() == {"pending": 3, "assigned": 5}
    assert base.as_dict() == {"pending": 3, "assigned": 1}
