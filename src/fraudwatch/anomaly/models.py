"""
Domain models for transaction fraud analytics.

A snapshot is a tuple of Transaction records, each one a customer's activity
inside a fixed 30-minute interval. Everything else here is derived from a
snapshot and recomputed on every run.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, NamedTuple, Optional

UNKNOWN_ACTIVITY = "Unknown"


class MalformedRecordError(Exception):
    """Raised when a snapshot record is missing a field or has a non-numeric value."""

    def __init__(self, index: int, details: str):
        self.index = index
        self.details = details
        super().__init__(f"Malformed transaction record at index {index}: {details}")


class ComputeInvariantViolation(Exception):
    """Raised when a record would break an aggregation invariant (e.g. a negative amount)."""

    pass


class DrCrIndicator(str, Enum):
    """Debit/credit indicator, using the upstream wire values."""

    DEBIT = "D"
    CREDIT = "C"

    @property
    def label(self) -> str:
        return "Debit" if self is DrCrIndicator.DEBIT else "Credit"


class FlagType(str, Enum):
    """Kinds of suspicious activity the detector can raise."""

    DR_CR_SAME_INTERVAL = "DR_CR_SAME_INTERVAL"
    HIGH_FREQUENCY = "HIGH_FREQUENCY"
    THRESHOLD_AVOIDANCE = "THRESHOLD_AVOIDANCE"
    UNUSUAL_RATIO = "UNUSUAL_RATIO"
    VOLUME_SPIKE = "VOLUME_SPIKE"
    REPEATED_AMOUNTS = "REPEATED_AMOUNTS"


class Severity(str, Enum):
    """Flag severity."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskLevel(str, Enum):
    """Customer risk band derived from the 0-100 risk score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_score(cls, score: int) -> "RiskLevel":
        if score >= 70:
            return cls.HIGH
        if score >= 40:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class Transaction:
    """A customer's transactions within one 30-minute interval."""

    customer_id: str
    customer_name: str
    interval: str  # "YYYY-MM-DD HH:MM"
    count: int
    amount: float
    drcr: DrCrIndicator
    last_transaction: Optional[str] = None

    @property
    def is_debit(self) -> bool:
        return self.drcr is DrCrIndicator.DEBIT

    def to_dict(self) -> dict:
        """Convert to the upstream wire format."""
        return {
            "CUSTOMER_ID": self.customer_id,
            "CUSTOMER_NAME": self.customer_name,
            "TRANSACTION_INTERVAL": self.interval,
            "TRANSACTION_COUNT": self.count,
            "TOTAL_AMOUNT_IN_INTERVAL": self.amount,
            "LAST_TRANSACTION_IN_INTERVAL": self.last_transaction,
            "DRCR_IND": self.drcr.value,
        }


class GroupKey(NamedTuple):
    """Composite key for a customer's records inside one interval."""

    customer_id: str
    interval: str


@dataclass(frozen=True)
class IntervalBucket:
    """Debit/credit counts and total amount for one interval across all customers."""

    interval: str
    debit_count: int = 0
    credit_count: int = 0
    total_amount: float = 0.0

    @property
    def transaction_count(self) -> int:
        return self.debit_count + self.credit_count

    def add(self, txn: Transaction) -> "IntervalBucket":
        if txn.is_debit:
            return replace(
                self,
                debit_count=self.debit_count + txn.count,
                total_amount=self.total_amount + txn.amount,
            )
        return replace(
            self,
            credit_count=self.credit_count + txn.count,
            total_amount=self.total_amount + txn.amount,
        )

    def to_dict(self) -> dict:
        return {
            "interval": self.interval,
            "debitCount": self.debit_count,
            "creditCount": self.credit_count,
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class DrCrTotal:
    """Snapshot-wide count and amount for one side of the ledger."""

    indicator: DrCrIndicator
    count: int = 0
    amount: float = 0.0

    def add(self, txn: Transaction) -> "DrCrTotal":
        return replace(self, count=self.count + txn.count, amount=self.amount + txn.amount)

    def to_dict(self) -> dict:
        return {"type": self.indicator.label, "count": self.count, "amount": self.amount}


def _later_timestamp(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    """Return whichever timestamp is more recent, ignoring missing values."""
    if not candidate:
        return current
    if not current:
        return candidate
    try:
        newer = datetime.fromisoformat(candidate) > datetime.fromisoformat(current)
    except (ValueError, TypeError):
        # Not ISO-8601 or mixed naive/aware; fall back to lexical order
        newer = candidate > current
    return candidate if newer else current


@dataclass(frozen=True)
class CustomerTotals:
    """Running per-customer totals used to seed CustomerActivity."""

    customer_id: str
    customer_name: str
    total_transactions: int = 0
    total_amount: float = 0.0
    debit_amount: float = 0.0
    credit_amount: float = 0.0
    last_activity: Optional[str] = None

    def add(self, txn: Transaction) -> "CustomerTotals":
        return replace(
            self,
            total_transactions=self.total_transactions + txn.count,
            total_amount=self.total_amount + txn.amount,
            debit_amount=self.debit_amount + (txn.amount if txn.is_debit else 0.0),
            credit_amount=self.credit_amount + (0.0 if txn.is_debit else txn.amount),
            last_activity=_later_timestamp(self.last_activity, txn.last_transaction),
        )

    @property
    def average_amount(self) -> float:
        if self.total_transactions == 0:
            return 0.0
        return self.total_amount / self.total_transactions

    @property
    def dr_cr_ratio(self) -> float:
        if self.credit_amount > 0:
            return self.debit_amount / self.credit_amount
        if self.debit_amount > 0:
            return 999.0
        return 0.0


@dataclass(frozen=True)
class FraudFlag:
    """A detected suspicious-pattern occurrence."""

    customer_id: str
    customer_name: str
    interval: str  # "" when the flag is not interval-scoped
    flag_type: FlagType
    severity: Severity
    details: str

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "transactionInterval": self.interval,
            "flagType": self.flag_type.value,
            "severity": self.severity.value,
            "details": self.details,
        }


@dataclass(frozen=True)
class CustomerActivity:
    """Aggregated activity and risk score for one customer."""

    customer_id: str
    customer_name: str
    total_transactions: int
    total_amount: float
    average_amount: float
    last_activity: str
    dr_cr_ratio: float
    risk_score: int

    @property
    def risk_level(self) -> RiskLevel:
        return RiskLevel.from_score(self.risk_score)

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "totalTransactions": self.total_transactions,
            "totalAmount": self.total_amount,
            "averageAmount": self.average_amount,
            "lastActivity": self.last_activity,
            "drCrRatio": self.dr_cr_ratio,
            "riskScore": self.risk_score,
        }


@dataclass(frozen=True)
class AmountTrend:
    interval: str
    amount: float
    count: int

    def to_dict(self) -> dict:
        return {"interval": self.interval, "amount": self.amount, "count": self.count}


@dataclass(frozen=True)
class TopCustomer:
    customer_id: str
    customer_name: str
    total_amount: float
    transaction_count: int

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "totalAmount": self.total_amount,
            "transactionCount": self.transaction_count,
        }


@dataclass(frozen=True)
class HeatmapRow:
    """Sparse interval -> transaction count map for one customer."""

    customer_id: str
    customer_name: str
    intervals: tuple[tuple[str, int], ...]

    def count_for(self, interval: str) -> int:
        return dict(self.intervals).get(interval, 0)

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "intervals": dict(self.intervals),
        }


def check_invariants(transactions: Iterable[Transaction]) -> None:
    """
    Reject records that would corrupt aggregates or risk scores.

    Raises:
        ComputeInvariantViolation: On a negative or non-finite amount, or a negative count
    """
    for index, txn in enumerate(transactions):
        if not math.isfinite(txn.amount):
            raise ComputeInvariantViolation(
                f"Non-finite amount {txn.amount} for customer {txn.customer_id} "
                f"in interval {txn.interval} (record {index})"
            )
        if txn.amount < 0:
            raise ComputeInvariantViolation(
                f"Negative amount {txn.amount} for customer {txn.customer_id} "
                f"in interval {txn.interval} (record {index})"
            )
        if txn.count < 0:
            raise ComputeInvariantViolation(
                f"Negative transaction count {txn.count} for customer {txn.customer_id} "
                f"in interval {txn.interval} (record {index})"
            )
