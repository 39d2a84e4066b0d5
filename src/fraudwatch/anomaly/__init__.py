"""
Fraud-pattern detection and customer risk scoring.

Provides:
- Interval/customer aggregation of transaction snapshots
- Six rule-based suspicious-pattern detectors
- Bounded per-customer risk scoring
- Analytics bundle assembly for the dashboard
- Data-quality checks on raw snapshots
"""

from fraudwatch.anomaly.aggregator import Aggregation, aggregate
from fraudwatch.anomaly.data_quality import DataQualityReport, validate_snapshot
from fraudwatch.anomaly.models import (
    ComputeInvariantViolation,
    CustomerActivity,
    DrCrIndicator,
    FlagType,
    FraudFlag,
    MalformedRecordError,
    RiskLevel,
    Severity,
    Transaction,
)
from fraudwatch.anomaly.report import FraudAnalyticsData, build_fraud_analytics
from fraudwatch.anomaly.scorer import RiskScorer
from fraudwatch.anomaly.transaction_patterns import FraudPatternDetector

__all__ = [
    "Aggregation",
    "aggregate",
    "DataQualityReport",
    "validate_snapshot",
    "ComputeInvariantViolation",
    "CustomerActivity",
    "DrCrIndicator",
    "FlagType",
    "FraudFlag",
    "MalformedRecordError",
    "RiskLevel",
    "Severity",
    "Transaction",
    "FraudAnalyticsData",
    "build_fraud_analytics",
    "RiskScorer",
    "FraudPatternDetector",
]
