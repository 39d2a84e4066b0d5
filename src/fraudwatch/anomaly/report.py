"""
Fraud analytics report assembly.

Runs aggregation, pattern detection and risk scoring over a snapshot and
packages the results into one immutable bundle for the dashboard.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from fraudwatch.anomaly.aggregator import Aggregation, aggregate
from fraudwatch.anomaly.models import (
    AmountTrend,
    CustomerActivity,
    DrCrTotal,
    FlagType,
    FraudFlag,
    HeatmapRow,
    IntervalBucket,
    RiskLevel,
    Severity,
    TopCustomer,
    Transaction,
    check_invariants,
)
from fraudwatch.anomaly.scorer import RiskScorer
from fraudwatch.anomaly.transaction_patterns import FraudPatternDetector

logger = logging.getLogger(__name__)

TOP_CUSTOMER_LIMIT = 10


@dataclass(frozen=True)
class FraudAnalyticsData:
    """Everything the fraud dashboard renders for one snapshot."""

    transactions: tuple[Transaction, ...]
    flags: tuple[FraudFlag, ...]
    transactions_by_interval: tuple[IntervalBucket, ...]
    dr_cr_distribution: tuple[DrCrTotal, DrCrTotal]
    customer_activity: tuple[CustomerActivity, ...]
    amount_trends: tuple[AmountTrend, ...]
    top_customers_by_volume: tuple[TopCustomer, ...]
    customer_heatmap: tuple[HeatmapRow, ...]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the dashboard wire format."""
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "flags": [f.to_dict() for f in self.flags],
            "transactionsByInterval": [b.to_dict() for b in self.transactions_by_interval],
            "drCrDistribution": [d.to_dict() for d in self.dr_cr_distribution],
            "customerActivity": [c.to_dict() for c in self.customer_activity],
            "amountTrends": [a.to_dict() for a in self.amount_trends],
            "top10CustomersByVolume": [c.to_dict() for c in self.top_customers_by_volume],
            "customerHeatmapData": [r.to_dict() for r in self.customer_heatmap],
        }

    def summary(self) -> dict[str, int]:
        """Headline metrics for the dashboard cards."""
        flagged_customers = {f.customer_id for f in self.flags if f.customer_id}
        return {
            "totalFlags": len(self.flags),
            "highRiskFlags": sum(1 for f in self.flags if f.severity is Severity.HIGH),
            "uniqueCustomersWithFlags": len(flagged_customers),
            "totalTransactions": len(self.transactions),
            "highRiskCustomers": sum(
                1 for c in self.customer_activity if c.risk_level is RiskLevel.HIGH
            ),
        }

    def filter_flags(
        self,
        severity: Optional[Severity] = None,
        flag_type: Optional[FlagType] = None,
        search: Optional[str] = None,
    ) -> list[FraudFlag]:
        """
        Filter flags for the flags table.

        Args:
            severity: Keep only this severity
            flag_type: Keep only this flag type
            search: Case-insensitive match on customer name, id or details

        Returns:
            Matching flags in canonical order
        """
        needle = search.lower() if search else ""

        def matches(flag: FraudFlag) -> bool:
            if severity is not None and flag.severity is not severity:
                return False
            if flag_type is not None and flag.flag_type is not flag_type:
                return False
            if needle:
                return (
                    needle in flag.customer_name.lower()
                    or needle in flag.customer_id.lower()
                    or needle in flag.details.lower()
                )
            return True

        return [f for f in self.flags if matches(f)]


def _top_customers(aggregation: Aggregation) -> tuple[TopCustomer, ...]:
    customers = [
        TopCustomer(
            customer_id=totals.customer_id,
            customer_name=totals.customer_name,
            total_amount=totals.total_amount,
            transaction_count=totals.total_transactions,
        )
        for totals in aggregation.customers.values()
    ]
    # sorted() is stable, so ties keep encounter order
    customers = sorted(customers, key=lambda c: c.total_amount, reverse=True)
    return tuple(customers[:TOP_CUSTOMER_LIMIT])


def _heatmap(aggregation: Aggregation) -> tuple[HeatmapRow, ...]:
    return tuple(
        HeatmapRow(
            customer_id=customer_id,
            customer_name=aggregation.customers[customer_id].customer_name,
            intervals=tuple(intervals.items()),
        )
        for customer_id, intervals in aggregation.heatmap.items()
    )


def build_fraud_analytics(
    transactions: Iterable[Transaction],
    high_frequency_threshold: Optional[int] = None,
    threshold_amount: Optional[float] = None,
) -> FraudAnalyticsData:
    """
    Run the full detection pipeline over a snapshot.

    Args:
        transactions: Snapshot records
        high_frequency_threshold: Override for the HIGH_FREQUENCY threshold
        threshold_amount: Override for the threshold-avoidance lower bound

    Returns:
        Immutable analytics bundle

    Raises:
        ComputeInvariantViolation: If a record has a negative or non-finite amount,
            or a negative count
    """
    snapshot = tuple(transactions)
    check_invariants(snapshot)

    aggregation = aggregate(snapshot)

    detector = FraudPatternDetector(
        high_frequency_threshold=high_frequency_threshold,
        threshold_amount=threshold_amount,
    )
    flags = detector.detect_patterns(aggregation, snapshot)

    activity = RiskScorer().score_customers(aggregation.customers, flags)

    buckets = tuple(aggregation.interval_buckets.values())

    return FraudAnalyticsData(
        transactions=snapshot,
        flags=tuple(flags),
        transactions_by_interval=buckets,
        dr_cr_distribution=(aggregation.debit, aggregation.credit),
        customer_activity=tuple(activity),
        amount_trends=tuple(
            AmountTrend(
                interval=b.interval,
                amount=b.total_amount,
                count=b.transaction_count,
            )
            for b in buckets
        ),
        top_customers_by_volume=_top_customers(aggregation),
        customer_heatmap=_heatmap(aggregation),
    )
