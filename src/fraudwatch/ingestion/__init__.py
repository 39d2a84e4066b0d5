"""
Snapshot retrieval from upstream transaction sources.
"""

from fraudwatch.ingestion.base_adapter import (
    BaseAdapter,
    RetrievalError,
    TransactionRecord,
    parse_snapshot,
)
from fraudwatch.ingestion.interval_api import IntervalTransactionsAdapter

__all__ = [
    "BaseAdapter",
    "RetrievalError",
    "TransactionRecord",
    "parse_snapshot",
    "IntervalTransactionsAdapter",
]
