"""
Base adapter for transaction snapshot sources.

All snapshot sources inherit from this base class so the refresh scheduler
and the API can fetch snapshots without knowing the transport.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fraudwatch.anomaly.models import DrCrIndicator, MalformedRecordError, Transaction


class RetrievalError(Exception):
    """Raised when a snapshot cannot be fetched from its source."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class TransactionRecord(BaseModel):
    """
    One upstream interval record, as returned by the transactions API.

    Validates types at the boundary; sign checks happen in the engine.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_id: str = Field(..., alias="CUSTOMER_ID")
    customer_name: str = Field(..., alias="CUSTOMER_NAME")
    interval: str = Field(..., alias="TRANSACTION_INTERVAL", description="YYYY-MM-DD HH:MM")
    count: int = Field(..., alias="TRANSACTION_COUNT")
    amount: float = Field(..., alias="TOTAL_AMOUNT_IN_INTERVAL", allow_inf_nan=False)
    last_transaction: Optional[str] = Field(default=None, alias="LAST_TRANSACTION_IN_INTERVAL")
    drcr: DrCrIndicator = Field(..., alias="DRCR_IND")

    @field_validator("customer_id", "customer_name", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        # Core banking exports numeric customer ids as JSON numbers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def to_transaction(self) -> Transaction:
        return Transaction(
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            interval=self.interval,
            count=self.count,
            amount=self.amount,
            drcr=self.drcr,
            last_transaction=self.last_transaction,
        )


def parse_snapshot(records: list[Any]) -> tuple[Transaction, ...]:
    """
    Parse raw upstream records into a snapshot.

    A single bad record rejects the whole batch, so the engine never runs on
    a partial snapshot.

    Raises:
        MalformedRecordError: On the first record that fails validation
    """
    snapshot = []
    for index, raw in enumerate(records):
        try:
            record = TransactionRecord.model_validate(raw)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            raise MalformedRecordError(index, problems) from e
        snapshot.append(record.to_transaction())
    return tuple(snapshot)


class BaseAdapter(ABC):
    """
    Abstract base for transaction snapshot sources.
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """
        Unique identifier for this source.

        Used for logging and job metadata.
        """
        pass

    @abstractmethod
    async def fetch_raw(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch the raw upstream records for a date range.

        Args:
            start_date: Inclusive start date (YYYY-MM-DD)
            end_date: Inclusive end date (YYYY-MM-DD)

        Returns:
            Records with upstream field names

        Raises:
            RetrievalError: If the source cannot be reached or answers with an error
        """
        pass

    async def fetch_snapshot(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> tuple[Transaction, ...]:
        """
        Fetch and parse a complete snapshot for a date range.

        Raises:
            RetrievalError: If the fetch fails
            MalformedRecordError: If any record is malformed
        """
        return parse_snapshot(await self.fetch_raw(start_date, end_date))

    async def healthcheck(self) -> bool:
        """
        Check if the source is available.

        Returns:
            True if the source is reachable, False otherwise
        """
        return True

    async def close(self) -> None:
        """
        Clean up any resources (connections, etc.)
        """
        pass

    async def __aenter__(self):
        """Support for async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Support for async context manager."""
        await self.close()
        return False
