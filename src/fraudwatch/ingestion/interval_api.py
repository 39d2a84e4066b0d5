"""
Adapter for the transaction intervals API.

GET {base_url}?startDate=YYYY-MM-DD&endDate=YYYY-MM-DD returns a JSON array of
customer interval records:

    [
        {
            "CUSTOMER_ID": "C1",
            "CUSTOMER_NAME": "Jane Doe",
            "TRANSACTION_INTERVAL": "2025-01-01 09:00",
            "TRANSACTION_COUNT": 2,
            "TOTAL_AMOUNT_IN_INTERVAL": 3000,
            "LAST_TRANSACTION_IN_INTERVAL": "2025-01-01T09:24:11",
            "DRCR_IND": "D"
        }
    ]
"""

import logging
from typing import Any, Optional

import httpx

from fraudwatch.config import settings
from fraudwatch.ingestion.base_adapter import BaseAdapter, RetrievalError

logger = logging.getLogger(__name__)


class IntervalTransactionsAdapter(BaseAdapter):
    """
    Fetches transaction snapshots over HTTP.

    Any non-2xx answer, timeout or transport failure raises RetrievalError;
    a snapshot is returned only once the full body has been read.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the adapter.

        Args:
            base_url: Intervals endpoint (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            client: Pre-built client, mainly for tests
        """
        self.base_url = base_url or settings.transactions_api_url
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    @property
    def source_name(self) -> str:
        return "transaction_intervals_api"

    async def fetch_raw(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params = {}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date

        logger.debug(f"Fetching transaction intervals from {self.base_url} {params}")

        try:
            response = await self._client.get(self.base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Transaction intervals API returned HTTP {status}")
            raise RetrievalError(f"HTTP error! status: {status}", status_code=status) from e
        except httpx.TimeoutException as e:
            logger.error(f"Transaction intervals API timed out: {e}")
            raise RetrievalError("Transaction intervals request timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Transaction intervals API unreachable: {e}")
            raise RetrievalError(f"Failed to fetch transaction intervals: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise RetrievalError("Transaction intervals API returned invalid JSON") from e

        if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
            raise RetrievalError("Transaction intervals API returned an unexpected payload shape")

        logger.info(f"Fetched {len(payload)} transaction interval records")
        return payload

    async def healthcheck(self) -> bool:
        try:
            response = await self._client.head(self.base_url)
            return response.status_code < 500
        except httpx.RequestError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
