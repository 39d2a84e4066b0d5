"""
Interval and customer aggregation for a transaction snapshot.

Folds the snapshot once, producing:
- Per-interval debit/credit buckets
- Per-(customer, interval) groups for pattern detection
- Per-customer running totals
- Snapshot-wide debit/credit totals
- The sparse customer x interval heatmap
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from fraudwatch.anomaly.models import (
    CustomerTotals,
    DrCrIndicator,
    DrCrTotal,
    GroupKey,
    IntervalBucket,
    Transaction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregation:
    """Result of aggregating a snapshot. Dict order is first-occurrence order."""

    interval_buckets: dict[str, IntervalBucket] = field(default_factory=dict)
    groups: dict[GroupKey, tuple[Transaction, ...]] = field(default_factory=dict)
    customers: dict[str, CustomerTotals] = field(default_factory=dict)
    heatmap: dict[str, dict[str, int]] = field(default_factory=dict)
    debit: DrCrTotal = field(default_factory=lambda: DrCrTotal(DrCrIndicator.DEBIT))
    credit: DrCrTotal = field(default_factory=lambda: DrCrTotal(DrCrIndicator.CREDIT))

    @property
    def interval_amounts(self) -> dict[str, float]:
        return {k: b.total_amount for k, b in self.interval_buckets.items()}


def aggregate(transactions: Iterable[Transaction]) -> Aggregation:
    """
    Aggregate a transaction snapshot.

    Each step replaces the per-key value with a new immutable total, so the
    input records are never touched and the result depends only on the input.

    Args:
        transactions: Snapshot records, in upstream order

    Returns:
        Aggregation over the snapshot
    """
    buckets: dict[str, IntervalBucket] = {}
    groups: dict[GroupKey, list[Transaction]] = {}
    customers: dict[str, CustomerTotals] = {}
    heatmap: dict[str, dict[str, int]] = {}
    debit = DrCrTotal(DrCrIndicator.DEBIT)
    credit = DrCrTotal(DrCrIndicator.CREDIT)

    record_count = 0
    for txn in transactions:
        record_count += 1

        if txn.is_debit:
            debit = debit.add(txn)
        else:
            credit = credit.add(txn)

        bucket = buckets.get(txn.interval) or IntervalBucket(interval=txn.interval)
        buckets[txn.interval] = bucket.add(txn)

        groups.setdefault(GroupKey(txn.customer_id, txn.interval), []).append(txn)

        totals = customers.get(txn.customer_id) or CustomerTotals(
            customer_id=txn.customer_id,
            customer_name=txn.customer_name,
        )
        customers[txn.customer_id] = totals.add(txn)

        row = heatmap.setdefault(txn.customer_id, {})
        row[txn.interval] = row.get(txn.interval, 0) + txn.count

    logger.debug(
        f"Aggregated {record_count} records into {len(buckets)} intervals, "
        f"{len(customers)} customers and {len(groups)} customer groups"
    )

    return Aggregation(
        interval_buckets=buckets,
        groups={key: tuple(txns) for key, txns in groups.items()},
        customers=customers,
        heatmap=heatmap,
        debit=debit,
        credit=credit,
    )
