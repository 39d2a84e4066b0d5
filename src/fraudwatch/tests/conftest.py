"""
Pytest configuration and shared fixtures for FraudWatch tests.
"""

import asyncio
from typing import Any, Callable, Optional

import pytest

from fraudwatch.anomaly.models import DrCrIndicator, Transaction
from fraudwatch.anomaly.scorer import RiskScorer
from fraudwatch.anomaly.transaction_patterns import FraudPatternDetector
from fraudwatch.ingestion.base_adapter import BaseAdapter, parse_snapshot


class FakeSource(BaseAdapter):
    """In-memory snapshot source with switchable failures."""

    def __init__(self, records: Optional[list[dict[str, Any]]] = None):
        self.records = records or []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[tuple[Optional[str], Optional[str]]] = []
        self.closed = False

    @property
    def source_name(self) -> str:
        return "fake"

    async def fetch_raw(self, start_date=None, end_date=None):
        self.calls.append((start_date, end_date))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.records)

    async def close(self) -> None:
        self.closed = True


def record(
    customer_id: str,
    customer_name: str,
    interval: str,
    amount: float,
    drcr: str = "D",
    count: int = 1,
    last: Optional[str] = None,
) -> dict[str, Any]:
    return {
        "CUSTOMER_ID": customer_id,
        "CUSTOMER_NAME": customer_name,
        "TRANSACTION_INTERVAL": interval,
        "TRANSACTION_COUNT": count,
        "TOTAL_AMOUNT_IN_INTERVAL": amount,
        "LAST_TRANSACTION_IN_INTERVAL": last,
        "DRCR_IND": drcr,
    }


@pytest.fixture
def txn() -> Callable[..., Transaction]:
    """Factory for Transaction records with sensible defaults."""

    def make(
        customer_id: str = "C1",
        interval: str = "2025-01-01 09:00",
        amount: float = 1000.0,
        drcr: str = "D",
        count: int = 1,
        name: Optional[str] = None,
        last: Optional[str] = None,
    ) -> Transaction:
        return Transaction(
            customer_id=customer_id,
            customer_name=name or f"Customer {customer_id}",
            interval=interval,
            count=count,
            amount=amount,
            drcr=DrCrIndicator(drcr),
            last_transaction=last,
        )

    return make


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """
    Raw snapshot that raises at least one flag of every kind.

    C1 reverses debit/credit at 09:00 with 7 transactions and a 96,000 debit,
    C2 repeats 6,000 three times, and C3's 70,000 credit spikes 11:00.
    """
    return [
        record("C1", "Alice Andersson", "2025-01-01 09:00", 96000, "D", 3, "2025-01-01T09:12:00"),
        record("C1", "Alice Andersson", "2025-01-01 09:00", 1000, "C", 4, "2025-01-01T09:25:00"),
        record("C2", "Bob Berg", "2025-01-01 09:30", 6000, "D"),
        record("C2", "Bob Berg", "2025-01-01 10:00", 6000, "D"),
        record("C2", "Bob Berg", "2025-01-01 10:30", 6000, "D"),
        record("C3", "Carla Costa", "2025-01-01 11:00", 70000, "C"),
    ]


@pytest.fixture
def sample_snapshot(sample_records) -> tuple[Transaction, ...]:
    return parse_snapshot(sample_records)


@pytest.fixture
def fake_source(sample_records) -> FakeSource:
    return FakeSource(sample_records)


@pytest.fixture
def detector() -> FraudPatternDetector:
    """Detector with the default thresholds."""
    return FraudPatternDetector(high_frequency_threshold=5, threshold_amount=95000)


@pytest.fixture
def risk_scorer() -> RiskScorer:
    return RiskScorer()


@pytest.fixture
def raw_record() -> Callable[..., dict[str, Any]]:
    """Factory for raw upstream records."""
    return record
