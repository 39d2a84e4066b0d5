"""
Data-quality checks for raw transaction snapshots.

Run on the upstream records before parsing, so a snapshot that would be
rejected as malformed can still be diagnosed.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

REQUIRED_FIELDS = (
    "CUSTOMER_ID",
    "CUSTOMER_NAME",
    "TRANSACTION_INTERVAL",
    "TRANSACTION_COUNT",
    "TOTAL_AMOUNT_IN_INTERVAL",
    "DRCR_IND",
)

NO_DATA = "No data available for validation"


@dataclass
class QualityRuleResult:
    """Outcome of one data-quality rule."""

    id: str
    name: str
    passed: bool
    score: float
    details: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "passed": self.passed,
            "score": self.score,
            "details": self.details,
        }


@dataclass
class DataQualityReport:
    """All rule outcomes plus their mean score."""

    rules: list[QualityRuleResult] = field(default_factory=list)

    @property
    def overall_score(self) -> float:
        if not self.rules:
            return 0.0
        return sum(r.score for r in self.rules) / len(self.rules)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.rules)

    def to_dict(self) -> dict:
        return {
            "overallScore": self.overall_score,
            "passed": self.passed,
            "rules": [r.to_dict() for r in self.rules],
        }


Records = Sequence[dict[str, Any]]


def check_completeness(records: Records) -> tuple[bool, float, str]:
    if not records:
        return False, 0, NO_DATA

    missing = [f for f in REQUIRED_FIELDS if f not in records[0]]
    if missing:
        return False, 0, f"Missing required fields: {', '.join(missing)}"

    total = 0
    nulls = 0
    for record in records:
        for name in REQUIRED_FIELDS:
            if name in record:
                total += 1
                if record[name] is None:
                    nulls += 1

    null_pct = nulls / total * 100 if total else 0.0
    if null_pct > 10:
        return False, 50, f"{null_pct:.1f}% of critical fields contain null values"
    if null_pct > 0:
        return True, 80, f"{null_pct:.1f}% of critical fields contain null values"
    return True, 100, "All required fields are present and populated"


def check_volume(records: Records) -> tuple[bool, float, str]:
    if not records:
        return False, 0, NO_DATA

    n = len(records)
    if n < 10:
        return (
            False,
            min(n * 10, 50),
            f"Only {n} transactions available, which is insufficient for reliable fraud detection",
        )
    if n < 50:
        return True, 70, f"{n} transactions available, which is minimal for fraud detection"
    return True, 100, f"{n} transactions available, which is sufficient for reliable fraud detection"


def check_distribution(records: Records) -> tuple[bool, float, str]:
    if not records:
        return False, 0, NO_DATA

    n = len(records)
    debit_pct = sum(1 for r in records if r.get("DRCR_IND") == "D") / n * 100
    credit_pct = sum(1 for r in records if r.get("DRCR_IND") == "C") / n * 100
    split = f"{debit_pct:.1f}% debits, {credit_pct:.1f}% credits"

    if debit_pct > 90 or credit_pct > 90:
        return False, 50, f"Imbalanced transaction types: {split}"
    if debit_pct > 80 or credit_pct > 80:
        return True, 70, f"Somewhat imbalanced transaction types: {split}"
    return True, 100, f"Well-balanced transaction types: {split}"


def check_time_coverage(records: Records) -> tuple[bool, float, str]:
    if not records:
        return False, 0, NO_DATA

    n = len({r.get("TRANSACTION_INTERVAL") for r in records})
    if n < 3:
        return False, 30, f"Only {n} time intervals covered, which is insufficient for pattern detection"
    if n < 8:
        return True, 70, f"{n} time intervals covered, which is minimal for pattern detection"
    return True, 100, f"{n} time intervals covered, which is good for pattern detection"


def check_customer_diversity(records: Records) -> tuple[bool, float, str]:
    if not records:
        return False, 0, NO_DATA

    n = len({r.get("CUSTOMER_ID") for r in records})
    if n < 3:
        return (
            False,
            min(n * 20, 40),
            f"Only {n} unique customers, which limits fraud pattern detection",
        )
    if n < 10:
        return True, 70, f"{n} unique customers, which is minimal for fraud pattern detection"
    return True, 100, f"{n} unique customers, which is good for fraud pattern detection"


QUALITY_RULES: list[tuple[str, str, Callable[[Records], tuple[bool, float, str]]]] = [
    ("data-completeness", "Data Completeness", check_completeness),
    ("data-volume", "Data Volume", check_volume),
    ("transaction-distribution", "Transaction Distribution", check_distribution),
    ("time-coverage", "Time Coverage", check_time_coverage),
    ("customer-diversity", "Customer Diversity", check_customer_diversity),
]


def validate_snapshot(records: Records) -> DataQualityReport:
    """
    Score a raw snapshot's fitness for fraud detection.

    Args:
        records: Raw upstream records (wire field names)

    Returns:
        DataQualityReport with one result per rule
    """
    report = DataQualityReport()
    for rule_id, name, check in QUALITY_RULES:
        passed, score, details = check(records)
        report.rules.append(
            QualityRuleResult(id=rule_id, name=name, passed=passed, score=score, details=details)
        )
    return report
