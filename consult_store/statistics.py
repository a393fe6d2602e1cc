"""Running per-status counters kept alongside an entity collection.

The aggregator trusts its caller to report each real status change exactly
once.  Reporting the same change twice double-counts and
omitting the previous status only performs the increment; both stay that way
until the next authoritative snapshot arrives with a full fetch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Type, Union

from pydantic.alias_generators import to_snake

from consult_store.statuses import PaymentStatus, coerce_status

Number = Union[int, float]
StatusKey = Union[str, Enum, None]

TOTAL_PAID = "totalPaid"
TOTAL_PENDING = "totalPending"
TOTAL_REFUNDED = "totalRefunded"
MONEY_BUCKETS = (TOTAL_PAID, TOTAL_PENDING, TOTAL_REFUNDED)


def _bucket(status: StatusKey) -> Optional[str]:
    if status is None or status == "":
        return None
    if isinstance(status, Enum):
        return str(status.value)
    return str(status)


@dataclass(frozen=True)
class StatusStatistics:
    """Immutable bucket map; every update returns a new instance."""

    buckets: Dict[str, Number] = field(default_factory=dict)

    @classmethod
    def empty(cls, status_enum: Type[Enum], extra: Iterable[str] = ()) -> "StatusStatistics":
        buckets: Dict[str, Number] = {member.value: 0 for member in status_enum}
        buckets.update({name: 0 for name in extra})
        return cls(buckets)

    @classmethod
    def from_snapshot(
        cls, snapshot: Mapping[str, Number], status_enum: Optional[Type[Enum]] = None
    ) -> "StatusStatistics":
        """Adopt an authoritative snapshot, values untouched.

        Keys that name a status (``"IN_PROGRESS"``, ``"inProgress"``,
        ``"in_progress"``) are spelled the way the aggregator spells them;
        any other key is kept as given.
        """

        buckets: Dict[str, Number] = {}
        for key, value in (snapshot or {}).items():
            name = str(key)
            if status_enum is not None:
                status = coerce_status(status_enum, name) or coerce_status(status_enum, to_snake(name))
                if status is not None:
                    name = status.value
            buckets[name] = value
        return cls(buckets)

    def count(self, status: StatusKey) -> Number:
        name = _bucket(status)
        return self.buckets.get(name, 0) if name else 0

    def on_transition(self, previous: StatusKey, new: StatusKey) -> "StatusStatistics":
        """Move one entity from ``previous`` to ``new``.

        The decrement is floored at zero and skipped when ``previous`` is
        missing or has no bucket yet.  No deduplication happens here.
        """

        buckets = dict(self.buckets)
        prev_name = _bucket(previous)
        if prev_name and buckets.get(prev_name, 0) > 0:
            buckets[prev_name] = buckets[prev_name] - 1
        new_name = _bucket(new)
        if new_name:
            buckets[new_name] = buckets.get(new_name, 0) + 1
        return StatusStatistics(buckets)

    def on_created(self, status: StatusKey) -> "StatusStatistics":
        return self.on_transition(None, status)

    def merged(self, other: "StatusStatistics") -> "StatusStatistics":
        """Overlay ``other``; buckets it does not name keep their value."""

        return StatusStatistics({**self.buckets, **other.buckets})

    def adjust(self, bucket: str, delta: Number) -> "StatusStatistics":
        buckets = dict(self.buckets)
        buckets[bucket] = buckets.get(bucket, 0) + delta
        return StatusStatistics(buckets)

    def status_total(self, status_enum: Type[Enum]) -> Number:
        """Sum of the status buckets only; money and other keys are ignored."""

        return sum(self.buckets.get(member.value, 0) for member in status_enum)

    def as_dict(self) -> Dict[str, Number]:
        return dict(self.buckets)


# ----------------------------------------------------------------------
# Payment amounts
# ----------------------------------------------------------------------
def payment_created(stats: StatusStatistics, status: PaymentStatus, amount: float) -> StatusStatistics:
    if status == PaymentStatus.COMPLETED:
        return stats.adjust(TOTAL_PAID, amount)
    if status == PaymentStatus.PENDING:
        return stats.adjust(TOTAL_PENDING, amount)
    return stats


def payment_transitioned(
    stats: StatusStatistics,
    previous: Optional[PaymentStatus],
    new: PaymentStatus,
    amount: float,
    refunded_amount: Optional[float] = None,
) -> StatusStatistics:
    """Move money between the amount buckets for a payment status change."""

    if previous == PaymentStatus.PENDING and new == PaymentStatus.COMPLETED:
        return stats.adjust(TOTAL_PENDING, -amount).adjust(TOTAL_PAID, amount)
    if previous == PaymentStatus.COMPLETED and new == PaymentStatus.REFUNDED:
        refunded = amount if refunded_amount is None else refunded_amount
        return stats.adjust(TOTAL_PAID, -refunded).adjust(TOTAL_REFUNDED, refunded)
    return stats


__all__ = [
    "StatusStatistics",
    "TOTAL_PAID",
    "TOTAL_PENDING",
    "TOTAL_REFUNDED",
    "MONEY_BUCKETS",
    "payment_created",
    "payment_transitioned",
]
