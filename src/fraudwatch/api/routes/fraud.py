"""
Fraud analytics API routes.

Provides endpoints for:
- The full analytics bundle for a date range
- The suspicious-activity flag list, with filters
- Data-quality checks on the raw snapshot
- Explicit refetch and refresh job history
"""

from typing import Any, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from fraudwatch.anomaly.data_quality import validate_snapshot
from fraudwatch.anomaly.models import FlagType, Severity
from fraudwatch.api.deps import Scheduler, Source
from fraudwatch.refresh.scheduler import RefreshTrigger

router = APIRouter()

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ========== Response Models ==========


class FlagResponse(BaseModel):
    """A single suspicious-activity flag."""

    customerId: str
    customerName: str
    transactionInterval: str
    flagType: FlagType
    severity: Severity
    details: str


class FlagListResponse(BaseModel):
    """Filtered flags."""

    items: list[FlagResponse]
    total: int


class RefreshJobResponse(BaseModel):
    """Summary of a refresh run."""

    id: str
    trigger: str
    status: str
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    startedAt: Optional[str] = None
    completedAt: Optional[str] = None
    durationSeconds: Optional[float] = None
    recordsFetched: int
    flagsRaised: int
    coalescedRequests: int
    errors: list[str]


class RefreshHistoryResponse(BaseModel):
    """Recent refresh runs and scheduler statistics."""

    items: list[RefreshJobResponse]
    stats: dict[str, Any]


# ========== Endpoints ==========


@router.get("/analytics")
async def get_analytics(
    scheduler: Scheduler,
    start_date: Optional[str] = Query(None, alias="startDate", pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, alias="endDate", pattern=DATE_PATTERN),
    high_frequency_threshold: Optional[int] = Query(
        None, alias="highFrequencyThreshold", ge=0, description="Defaults to 5"
    ),
    threshold_amount: Optional[float] = Query(
        None, alias="thresholdAmount", ge=0, description="Defaults to 95000"
    ),
) -> dict[str, Any]:
    """
    Return the analytics bundle for the date range.

    Served from the latest refresh when it covers the same window and
    thresholds; otherwise a fresh snapshot is fetched. Without dates the
    timer window (today) is used.

    The response carries the dashboard fields plus a `summary` of headline
    metrics.
    """
    job = await scheduler.current(
        RefreshTrigger.API,
        start_date=start_date,
        end_date=end_date,
        high_frequency_threshold=high_frequency_threshold,
        threshold_amount=threshold_amount,
    )
    data = job.result.to_dict()
    data["summary"] = job.result.summary()
    return data


@router.get("/flags", response_model=FlagListResponse)
async def list_flags(
    scheduler: Scheduler,
    start_date: Optional[str] = Query(None, alias="startDate", pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, alias="endDate", pattern=DATE_PATTERN),
    severity: Optional[Severity] = Query(None, description="Filter by severity"),
    flag_type: Optional[FlagType] = Query(None, alias="flagType", description="Filter by flag type"),
    search: Optional[str] = Query(None, max_length=200, description="Customer name, id or details"),
) -> FlagListResponse:
    """List suspicious-activity flags for the date range."""
    job = await scheduler.current(RefreshTrigger.API, start_date=start_date, end_date=end_date)
    flags = job.result.filter_flags(severity=severity, flag_type=flag_type, search=search)

    return FlagListResponse(
        items=[FlagResponse(**f.to_dict()) for f in flags],
        total=len(flags),
    )


@router.get("/data-quality")
async def get_data_quality(
    source: Source,
    start_date: Optional[str] = Query(None, alias="startDate", pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, alias="endDate", pattern=DATE_PATTERN),
) -> dict[str, Any]:
    """Check whether the raw snapshot is fit for fraud detection."""
    records = await source.fetch_raw(start_date, end_date)
    return validate_snapshot(records).to_dict()


@router.post("/refresh", response_model=RefreshJobResponse)
async def trigger_refresh(
    scheduler: Scheduler,
    start_date: Optional[str] = Query(None, alias="startDate", pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, alias="endDate", pattern=DATE_PATTERN),
) -> RefreshJobResponse:
    """Explicitly refetch the snapshot and recompute analytics."""
    start_date, end_date = scheduler.resolve_window(start_date, end_date)
    job = await scheduler.refresh(RefreshTrigger.MANUAL, start_date=start_date, end_date=end_date)
    return RefreshJobResponse(**job.to_dict())


@router.get("/refresh/jobs", response_model=RefreshHistoryResponse)
async def list_refresh_jobs(
    scheduler: Scheduler,
    limit: int = Query(10, ge=1, le=100, description="Number of jobs"),
) -> RefreshHistoryResponse:
    """Recent refresh runs, newest first."""
    return RefreshHistoryResponse(
        items=[RefreshJobResponse(**j.to_dict()) for j in scheduler.get_recent_jobs(limit)],
        stats=scheduler.get_stats(),
    )
