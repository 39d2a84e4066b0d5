"""
Transaction pattern detection for interval-bucketed customer activity.

Detects six suspicious patterns:
- Debit/credit reversal: debit and credit by one customer in one interval
- High frequency: too many transactions in a single 30-minute interval
- Threshold avoidance: amounts just under the 100,000 reporting limit
- Unusual ratio: lopsided debit/credit amounts for a customer
- Volume spike: an interval's total dwarfing the preceding interval
- Repeated amounts: the same sizeable amount recurring for a customer
"""

import logging
from typing import Optional, Sequence

from fraudwatch.anomaly.aggregator import Aggregation
from fraudwatch.anomaly.models import FlagType, FraudFlag, Severity, Transaction
from fraudwatch.config import settings

logger = logging.getLogger(__name__)

MULTIPLE_CUSTOMERS = "Multiple Customers"


def format_amount(value: float) -> str:
    """Format an amount with thousands separators, e.g. 6000.0 -> '6,000'."""
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def _plain_number(value: float) -> str:
    """Format a number without grouping or a trailing '.0'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _amount_order(amount: float) -> tuple[int, float]:
    if float(amount).is_integer():
        return 0, amount
    return 1, 0.0


class FraudPatternDetector:
    """
    Detects suspicious patterns in an aggregated transaction snapshot.

    Rules are independent and may overlap. Output order is fixed: customer
    groups in first-occurrence order (reversal, high frequency, then threshold
    avoidance per record), then unusual ratios per customer, then volume
    spikes over sorted intervals, then repeated amounts per customer.
    """

    # Amounts at or above this are reported, so just-below is suspicious
    REPORTING_LIMIT = 100_000

    # Ratio bounds for UNUSUAL_RATIO. The ratio is never negative, so the
    # lower bound never fires.
    UNUSUAL_RATIO_UPPER = 10
    UNUSUAL_RATIO_LOWER = -10

    VOLUME_SPIKE_MULTIPLIER = 3
    VOLUME_SPIKE_MIN_AMOUNT = 50_000

    REPEATED_AMOUNT_MIN_OCCURRENCES = 3
    REPEATED_AMOUNT_MIN_VALUE = 5_000

    def __init__(
        self,
        high_frequency_threshold: Optional[int] = None,
        threshold_amount: Optional[float] = None,
    ):
        """
        Initialize the pattern detector.

        Args:
            high_frequency_threshold: Max transactions per customer interval before flagging
            threshold_amount: Lower bound of the threshold-avoidance band
        """
        self.high_frequency_threshold = (
            high_frequency_threshold
            if high_frequency_threshold is not None
            else settings.high_frequency_threshold
        )
        self.threshold_amount = (
            threshold_amount if threshold_amount is not None else settings.threshold_amount
        )

    def detect_patterns(
        self,
        aggregation: Aggregation,
        transactions: Sequence[Transaction],
    ) -> list[FraudFlag]:
        """
        Detect all suspicious patterns in a snapshot.

        Args:
            aggregation: Aggregated view of the snapshot
            transactions: The raw snapshot records

        Returns:
            Flags in canonical order
        """
        flags: list[FraudFlag] = []

        for txns in aggregation.groups.values():
            flags.extend(self.detect_dr_cr_same_interval(txns))
            flags.extend(self.detect_high_frequency(txns))
            flags.extend(self.detect_threshold_avoidance(txns))

        flags.extend(self.detect_unusual_ratios(aggregation))
        flags.extend(self.detect_volume_spikes(aggregation))
        flags.extend(self.detect_repeated_amounts(transactions))

        logger.info(
            f"Detected {len(flags)} flags across {len(aggregation.customers)} customers"
        )
        return flags

    def detect_dr_cr_same_interval(
        self,
        txns: Sequence[Transaction],
    ) -> list[FraudFlag]:
        """
        Detect a debit and a credit by the same customer in one interval.

        Args:
            txns: Records of one customer group

        Returns:
            At most one flag
        """
        if len(txns) < 2:
            return []

        has_debit = any(t.is_debit for t in txns)
        has_credit = any(not t.is_debit for t in txns)
        if not (has_debit and has_credit):
            return []

        first = txns[0]
        return [
            FraudFlag(
                customer_id=first.customer_id,
                customer_name=first.customer_name,
                interval=first.interval,
                flag_type=FlagType.DR_CR_SAME_INTERVAL,
                severity=Severity.MEDIUM,
                details="Customer has both debit and credit transactions in the same 30-minute interval",
            )
        ]

    def detect_high_frequency(
        self,
        txns: Sequence[Transaction],
    ) -> list[FraudFlag]:
        """
        Detect more transactions in one interval than the configured threshold.

        The count is the sum of the bucket counts, not the number of records.
        """
        if not txns:
            return []

        total_count = sum(t.count for t in txns)
        if total_count <= self.high_frequency_threshold:
            return []

        first = txns[0]
        return [
            FraudFlag(
                customer_id=first.customer_id,
                customer_name=first.customer_name,
                interval=first.interval,
                flag_type=FlagType.HIGH_FREQUENCY,
                severity=Severity.HIGH,
                details=(
                    f"{total_count} transactions in a 30-minute window "
                    f"(threshold: {self.high_frequency_threshold})"
                ),
            )
        ]

    def detect_threshold_avoidance(
        self,
        txns: Sequence[Transaction],
    ) -> list[FraudFlag]:
        """Detect individual records strictly between the threshold and 100,000."""
        return [
            FraudFlag(
                customer_id=t.customer_id,
                customer_name=t.customer_name,
                interval=t.interval,
                flag_type=FlagType.THRESHOLD_AVOIDANCE,
                severity=Severity.MEDIUM,
                details=(
                    f"Transaction amount ({_plain_number(t.amount)}) is just below "
                    f"the {self.REPORTING_LIMIT:,} threshold"
                ),
            )
            for t in txns
            if self.threshold_amount < t.amount < self.REPORTING_LIMIT
        ]

    def detect_unusual_ratios(
        self,
        aggregation: Aggregation,
    ) -> list[FraudFlag]:
        """Detect customers whose debit/credit amount ratio is out of bounds."""
        flags = []

        for customer in aggregation.customers.values():
            ratio = customer.dr_cr_ratio
            if ratio > self.UNUSUAL_RATIO_UPPER or ratio < self.UNUSUAL_RATIO_LOWER:
                flags.append(
                    FraudFlag(
                        customer_id=customer.customer_id,
                        customer_name=customer.customer_name,
                        interval="",
                        flag_type=FlagType.UNUSUAL_RATIO,
                        severity=Severity.LOW,
                        details=f"Unusual debit/credit ratio: {ratio:.2f}",
                    )
                )

        return flags

    def detect_volume_spikes(
        self,
        aggregation: Aggregation,
    ) -> list[FraudFlag]:
        """
        Detect intervals whose total amount spikes over the preceding interval.

        Interval keys sort chronologically as strings, so this is a single
        pass over consecutive pairs. Spikes are not attributed to a customer.
        """
        flags = []

        amounts = aggregation.interval_amounts
        intervals = sorted(amounts)

        for prev_interval, curr_interval in zip(intervals, intervals[1:]):
            prev_amount = amounts[prev_interval]
            curr_amount = amounts[curr_interval]

            if (
                curr_amount > prev_amount * self.VOLUME_SPIKE_MULTIPLIER
                and curr_amount > self.VOLUME_SPIKE_MIN_AMOUNT
            ):
                flags.append(
                    FraudFlag(
                        customer_id="",
                        customer_name=MULTIPLE_CUSTOMERS,
                        interval=curr_interval,
                        flag_type=FlagType.VOLUME_SPIKE,
                        severity=Severity.HIGH,
                        details=(
                            f"Unusual spike in transaction volume: {format_amount(curr_amount)} "
                            f"(previous: {format_amount(prev_amount)})"
                        ),
                    )
                )

        return flags

    def detect_repeated_amounts(
        self,
        transactions: Sequence[Transaction],
    ) -> list[FraudFlag]:
        """
        Detect the same sizeable amount recurring for a customer.

        Counted across all of the customer's records, regardless of interval.
        Per customer, whole amounts come first in ascending order, then
        fractional amounts in first-seen order.
        """
        flags = []

        names: dict[str, str] = {}
        amount_counts: dict[str, dict[float, int]] = {}
        for txn in transactions:
            names.setdefault(txn.customer_id, txn.customer_name)
            counts = amount_counts.setdefault(txn.customer_id, {})
            counts[txn.amount] = counts.get(txn.amount, 0) + 1

        for customer_id, counts in amount_counts.items():
            for amount in sorted(counts, key=_amount_order):
                count = counts[amount]
                if (
                    count >= self.REPEATED_AMOUNT_MIN_OCCURRENCES
                    and amount > self.REPEATED_AMOUNT_MIN_VALUE
                ):
                    flags.append(
                        FraudFlag(
                            customer_id=customer_id,
                            customer_name=names[customer_id],
                            interval="",
                            flag_type=FlagType.REPEATED_AMOUNTS,
                            severity=Severity.MEDIUM,
                            details=(
                                f"Customer has {count} transactions with identical "
                                f"amount: {format_amount(amount)}"
                            ),
                        )
                    )

        return flags
