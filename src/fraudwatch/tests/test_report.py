"""
Tests for the analytics bundle.
"""

import pytest

from fraudwatch.anomaly.models import ComputeInvariantViolation, FlagType, Severity
from fraudwatch.anomaly.report import build_fraud_analytics


@pytest.fixture
def report(sample_snapshot):
    return build_fraud_analytics(sample_snapshot, high_frequency_threshold=5, threshold_amount=95000)


class TestBuildFraudAnalytics:
    """Tests for the assembled bundle."""

    def test_wire_keys(self, report):
        assert set(report.to_dict()) == {
            "transactions",
            "flags",
            "transactionsByInterval",
            "drCrDistribution",
            "customerActivity",
            "amountTrends",
            "top10CustomersByVolume",
            "customerHeatmapData",
        }

    def test_deterministic(self, sample_snapshot):
        """The same snapshot always yields the same bundle."""
        first = build_fraud_analytics(sample_snapshot, 5, 95000)
        second = build_fraud_analytics(sample_snapshot, 5, 95000)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_counts_conserved(self, report, sample_snapshot):
        """Bucket counts and the debit/credit split both add up to the record counts."""
        total = sum(t.count for t in sample_snapshot)
        debit, credit = report.dr_cr_distribution

        assert sum(b.transaction_count for b in report.transactions_by_interval) == total
        assert debit.count + credit.count == total

    def test_distribution(self, report):
        assert [d.to_dict() for d in report.dr_cr_distribution] == [
            {"type": "Debit", "count": 6, "amount": 114000},
            {"type": "Credit", "count": 5, "amount": 71000},
        ]

    def test_interval_buckets(self, report):
        first = report.transactions_by_interval[0].to_dict()

        assert first == {
            "interval": "2025-01-01 09:00",
            "debitCount": 3,
            "creditCount": 4,
            "totalAmount": 97000,
        }
        assert len(report.transactions_by_interval) == 5

    def test_amount_trends_follow_buckets(self, report):
        trends = report.amount_trends

        assert [t.interval for t in trends] == [b.interval for b in report.transactions_by_interval]
        assert (trends[0].amount, trends[0].count) == (97000, 7)

    def test_customer_activity(self, report):
        by_id = {a.customer_id: a for a in report.customer_activity}

        assert by_id["C1"].total_transactions == 7
        assert by_id["C1"].last_activity == "2025-01-01T09:25:00"
        assert by_id["C2"].last_activity == "Unknown"
        assert by_id["C2"].average_amount == 6000

    def test_heatmap(self, report):
        row = next(r for r in report.customer_heatmap if r.customer_id == "C1")

        assert row.count_for("2025-01-01 09:00") == 7
        assert row.count_for("2025-01-01 09:30") == 0
        assert row.to_dict()["intervals"] == {"2025-01-01 09:00": 7}

    def test_empty_snapshot(self):
        report = build_fraud_analytics([], 5, 95000)

        assert report.flags == ()
        assert report.customer_activity == ()
        assert report.top_customers_by_volume == ()
        assert [d.count for d in report.dr_cr_distribution] == [0, 0]

    def test_negative_amount_rejected(self, txn):
        with pytest.raises(ComputeInvariantViolation):
            build_fraud_analytics([txn(), txn(amount=-5)])

    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_amount_rejected(self, txn, amount):
        with pytest.raises(ComputeInvariantViolation):
            build_fraud_analytics([txn(), txn(amount=amount)])

    def test_negative_count_rejected(self, txn):
        with pytest.raises(ComputeInvariantViolation):
            build_fraud_analytics([txn(count=-1)])


class TestTopCustomers:
    """Tests for the top customers by volume."""

    def test_sorted_by_amount(self, report):
        assert [c.customer_id for c in report.top_customers_by_volume] == ["C1", "C3", "C2"]

    def test_limited_to_ten(self, txn):
        records = [txn(customer_id=f"C{i:02d}", amount=1000 * (i + 1)) for i in range(12)]

        report = build_fraud_analytics(records, 5, 95000)

        top = report.top_customers_by_volume
        assert len(top) == 10
        assert top[0].total_amount == 12000
        assert [c.total_amount for c in top] == sorted((c.total_amount for c in top), reverse=True)

    def test_ties_keep_encounter_order(self, txn):
        report = build_fraud_analytics(
            [txn(customer_id="B", amount=5000), txn(customer_id="A", amount=5000)], 5, 95000
        )

        assert [c.customer_id for c in report.top_customers_by_volume] == ["B", "A"]


class TestSummary:
    """Tests for headline metrics."""

    def test_summary(self, report):
        assert report.summary() == {
            "totalFlags": 7,
            "highRiskFlags": 2,
            "uniqueCustomersWithFlags": 2,
            "totalTransactions": 6,
            "highRiskCustomers": 0,
        }


class TestFilterFlags:
    """Tests for the flag table filters."""

    def test_no_filters(self, report):
        assert report.filter_flags() == list(report.flags)

    def test_by_severity(self, report):
        flags = report.filter_flags(severity=Severity.HIGH)

        assert {f.flag_type for f in flags} == {FlagType.HIGH_FREQUENCY, FlagType.VOLUME_SPIKE}

    def test_by_type(self, report):
        flags = report.filter_flags(flag_type=FlagType.REPEATED_AMOUNTS)

        assert [f.customer_id for f in flags] == ["C2"]

    def test_search_customer_name(self, report):
        """Search is case-insensitive."""
        flags = report.filter_flags(search="BOB")

        assert [f.flag_type for f in flags] == [FlagType.UNUSUAL_RATIO, FlagType.REPEATED_AMOUNTS]

    def test_search_details(self, report):
        flags = report.filter_flags(search="ratio")

        assert len(flags) == 2

    def test_combined(self, report):
        flags = report.filter_flags(severity=Severity.LOW, search="alice")

        assert [(f.flag_type, f.customer_id) for f in flags] == [(FlagType.UNUSUAL_RATIO, "C1")]
