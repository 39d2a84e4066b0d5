"""
API tests for the fraud analytics endpoints.

The upstream source is replaced with an in-memory one. The timer loop is
disabled except where a test covers serving its bundle.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fraudwatch.config import settings
from fraudwatch.ingestion.base_adapter import RetrievalError


@pytest.fixture
def client(fake_source):
    from fraudwatch.main import app

    with patch("fraudwatch.main.IntervalTransactionsAdapter", return_value=fake_source), \
         patch.object(settings, "scheduler_enabled", False):
        with TestClient(app) as test_client:
            yield test_client


class TestAnalyticsEndpoint:
    """Tests for GET /api/v1/fraud/analytics."""

    def test_returns_bundle(self, client, fake_source):
        response = client.get(
            "/api/v1/fraud/analytics",
            params={"startDate": "2025-01-01", "endDate": "2025-01-02"},
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data) >= {
            "transactions",
            "flags",
            "transactionsByInterval",
            "drCrDistribution",
            "customerActivity",
            "amountTrends",
            "top10CustomersByVolume",
            "customerHeatmapData",
            "summary",
        }
        assert data["summary"]["totalFlags"] == 7
        assert data["flags"][0]["flagType"] == "DR_CR_SAME_INTERVAL"
        assert data["drCrDistribution"][0]["type"] == "Debit"
        assert fake_source.calls == [("2025-01-01", "2025-01-02")]

    def test_threshold_override(self, client):
        response = client.get("/api/v1/fraud/analytics", params={"highFrequencyThreshold": 10})

        assert response.status_code == 200
        flag_types = {f["flagType"] for f in response.json()["flags"]}
        assert "HIGH_FREQUENCY" not in flag_types

    def test_invalid_date(self, client):
        response = client.get("/api/v1/fraud/analytics", params={"startDate": "01/01/2025"})

        assert response.status_code == 422

    def test_upstream_failure(self, client, fake_source):
        """Upstream errors surface as 502 with a retry hint."""
        fake_source.error = RetrievalError("HTTP error! status: 503", status_code=503)

        response = client.get("/api/v1/fraud/analytics")

        assert response.status_code == 502
        data = response.json()
        assert data["message"] == "HTTP error! status: 503"
        assert data["upstream_status"] == 503
        assert data["retryable"] is True

    def test_malformed_snapshot(self, client, fake_source):
        fake_source.records = [{"CUSTOMER_ID": "C1"}]

        response = client.get("/api/v1/fraud/analytics")

        assert response.status_code == 422
        assert response.json()["record_index"] == 0

    def test_negative_amount(self, client, fake_source, raw_record):
        fake_source.records = [raw_record("C1", "A", "2025-01-01 09:00", -100)]

        response = client.get("/api/v1/fraud/analytics")

        assert response.status_code == 422
        assert response.json()["error"] == "Invalid snapshot"


class TestFlagsEndpoint:
    """Tests for GET /api/v1/fraud/flags."""

    def test_filter_by_severity(self, client):
        response = client.get("/api/v1/fraud/flags", params={"severity": "HIGH"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {f["flagType"] for f in data["items"]} == {"HIGH_FREQUENCY", "VOLUME_SPIKE"}

    def test_filter_by_type_and_search(self, client):
        response = client.get(
            "/api/v1/fraud/flags",
            params={"flagType": "REPEATED_AMOUNTS", "search": "berg"},
        )

        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["customerId"] == "C2"
        assert items[0]["details"] == "Customer has 3 transactions with identical amount: 6,000"

    def test_unknown_flag_type(self, client):
        response = client.get("/api/v1/fraud/flags", params={"flagType": "NOPE"})

        assert response.status_code == 422


class TestDataQualityEndpoint:
    """Tests for GET /api/v1/fraud/data-quality."""

    def test_scores_raw_snapshot(self, client):
        response = client.get("/api/v1/fraud/data-quality")

        assert response.status_code == 200
        data = response.json()
        assert data["overallScore"] == 78
        assert data["passed"] is False


class TestRefreshEndpoints:
    """Tests for explicit refreshes and job history."""

    def test_manual_refresh(self, client):
        response = client.post("/api/v1/fraud/refresh", params={"startDate": "2025-01-01"})

        assert response.status_code == 200
        data = response.json()
        assert data["trigger"] == "manual"
        assert data["status"] == "completed"
        assert data["recordsFetched"] == 6
        assert data["flagsRaised"] == 7

        history = client.get("/api/v1/fraud/refresh/jobs").json()
        assert history["items"][0]["id"] == data["id"]
        assert history["stats"]["completed_jobs"] == 1

    def test_analytics_reuses_refreshed_bundle(self, client, fake_source):
        """A refresh of the default window answers the next GET without refetching."""
        client.post("/api/v1/fraud/refresh")

        analytics = client.get("/api/v1/fraud/analytics")
        flags = client.get("/api/v1/fraud/flags")

        assert analytics.status_code == 200
        assert analytics.json()["summary"]["totalFlags"] == 7
        assert flags.status_code == 200
        assert len(fake_source.calls) == 1


class TestTimerBundle:
    """Tests for serving the bundle built by the timer loop."""

    @pytest.fixture
    def timer_client(self, fake_source):
        from fraudwatch.main import app

        with patch("fraudwatch.main.IntervalTransactionsAdapter", return_value=fake_source), \
             patch.object(settings, "scheduler_enabled", True):
            with TestClient(app) as test_client:
                yield test_client

    def test_get_after_timer_refresh(self, timer_client, fake_source):
        """The timer run and the GET share one upstream fetch."""
        response = timer_client.get("/api/v1/fraud/analytics")

        assert response.status_code == 200
        assert response.json()["summary"]["totalFlags"] == 7
        assert len(fake_source.calls) == 1

    def test_threshold_override_refetches(self, timer_client, fake_source):
        timer_client.get("/api/v1/fraud/analytics")

        response = timer_client.get("/api/v1/fraud/analytics", params={"highFrequencyThreshold": 10})

        assert response.status_code == 200
        assert len(fake_source.calls) == 2


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["transactions_api"]["status"] == "healthy"
        assert data["last_refresh"] is None

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "FraudWatch"
