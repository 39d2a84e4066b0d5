"""
Refresh scheduler for fraud analytics.

Keeps the latest analytics bundle current:
- Timer-driven refresh every refresh_interval_seconds
- Explicit refetch from callers (API, operators)
- Single flight: an identical request while one is in flight joins it
- Runs are serialized, so a bundle is only ever replaced by a newer one
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

from fraudwatch.anomaly.report import FraudAnalyticsData, build_fraud_analytics
from fraudwatch.config import settings
from fraudwatch.ingestion.base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


class RefreshTrigger(str, Enum):
    """What caused a refresh."""

    TIMER = "timer"
    MANUAL = "manual"
    API = "api"


@dataclass(frozen=True)
class RefreshRequest:
    """Parameters of a refresh; identical requests are coalesced."""

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    high_frequency_threshold: Optional[int] = None
    threshold_amount: Optional[float] = None


@dataclass
class RefreshJob:
    """A single refresh run."""

    id: UUID
    trigger: RefreshTrigger
    request: RefreshRequest
    status: str = "pending"  # pending, running, completed, failed, cancelled
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    records_fetched: int = 0
    flags_raised: int = 0
    coalesced_requests: int = 0
    errors: list[str] = field(default_factory=list)
    result: Optional[FraudAnalyticsData] = field(default=None, repr=False)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get job duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "trigger": self.trigger.value,
            "status": self.status,
            "startDate": self.request.start_date,
            "endDate": self.request.end_date,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "durationSeconds": self.duration_seconds,
            "recordsFetched": self.records_fetched,
            "flagsRaised": self.flags_raised,
            "coalescedRequests": self.coalesced_requests,
            "errors": list(self.errors),
        }


def today_range() -> tuple[str, str]:
    """Default timer window: today only."""
    today = date.today().isoformat()
    return today, today


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    """
    Single-flight refresh supervisor.

    Only a fully fetched snapshot reaches the engine. A failed or cancelled
    refresh leaves the previous bundle in place.
    """

    def __init__(
        self,
        source: BaseAdapter,
        interval_seconds: Optional[float] = None,
        date_range: Optional[Callable[[], tuple[str, str]]] = None,
        max_jobs: int = 100,
    ):
        """
        Initialize the scheduler.

        Args:
            source: Snapshot source
            interval_seconds: Timer period (defaults to settings)
            date_range: Callable giving (start_date, end_date) for timer runs
            max_jobs: Job history size
        """
        self._source = source
        self.interval_seconds = interval_seconds or settings.refresh_interval_seconds
        self._date_range = date_range or today_range
        self._max_jobs = max_jobs

        self._jobs: dict[UUID, RefreshJob] = {}
        self._in_flight: dict[RefreshRequest, tuple[asyncio.Task, RefreshJob]] = {}
        self._lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None
        self._latest: Optional[FraudAnalyticsData] = None
        self._latest_job: Optional[RefreshJob] = None

    @property
    def latest(self) -> Optional[FraudAnalyticsData]:
        """Most recently completed analytics bundle."""
        return self._latest

    @property
    def latest_job(self) -> Optional[RefreshJob]:
        return self._latest_job

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def refresh(
        self,
        trigger: RefreshTrigger = RefreshTrigger.MANUAL,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        high_frequency_threshold: Optional[int] = None,
        threshold_amount: Optional[float] = None,
    ) -> RefreshJob:
        """
        Fetch a snapshot and recompute the analytics bundle.

        If an identical request is already in flight, waits for it instead of
        starting another.

        Returns:
            The completed job (job.result holds the bundle)

        Raises:
            RetrievalError: If the snapshot fetch failed
            MalformedRecordError: If the snapshot contained a malformed record
            ComputeInvariantViolation: If a record had a negative amount or count
        """
        request = RefreshRequest(
            start_date=start_date,
            end_date=end_date,
            high_frequency_threshold=high_frequency_threshold,
            threshold_amount=threshold_amount,
        )

        in_flight = self._in_flight.get(request)
        if in_flight is not None and not in_flight[0].done():
            task, job = in_flight
            job.coalesced_requests += 1
            logger.info(f"Refresh {job.id} already in flight, joining ({trigger.value})")
        else:
            job = RefreshJob(id=uuid4(), trigger=trigger, request=request)
            self._record(job)
            task = asyncio.create_task(self._run(job))
            self._in_flight[request] = (task, job)
            task.add_done_callback(lambda t, r=request: self._release(r, t))

        # Shield so one caller going away does not cancel the run for the others
        return await asyncio.shield(task)

    def resolve_window(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> tuple[Optional[str], Optional[str]]:
        """A request without dates covers the timer window."""
        if start_date is None and end_date is None:
            return self._date_range()
        return start_date, end_date

    async def current(
        self,
        trigger: RefreshTrigger = RefreshTrigger.API,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        high_frequency_threshold: Optional[int] = None,
        threshold_amount: Optional[float] = None,
    ) -> RefreshJob:
        """
        Return the latest bundle if it answers this request, else refresh.

        The latest bundle is served while it is younger than the timer
        interval and was built for the same window and thresholds. Missing
        dates resolve to the timer window.
        """
        start_date, end_date = self.resolve_window(start_date, end_date)
        request = RefreshRequest(
            start_date=start_date,
            end_date=end_date,
            high_frequency_threshold=high_frequency_threshold,
            threshold_amount=threshold_amount,
        )

        job = self._latest_job
        if job is not None and job.request == request and job.completed_at is not None:
            age = (_utcnow() - job.completed_at).total_seconds()
            if age < self.interval_seconds:
                logger.debug(f"Serving refresh {job.id} ({age:.1f}s old)")
                return job

        return await self.refresh(
            trigger,
            start_date=start_date,
            end_date=end_date,
            high_frequency_threshold=high_frequency_threshold,
            threshold_amount=threshold_amount,
        )

    async def _run(self, job: RefreshJob) -> RefreshJob:
        """Run one refresh; serialized with all other runs."""
        request = job.request
        try:
            # Queued jobs can be cancelled while still waiting here
            async with self._lock:
                job.status = "running"
                job.started_at = _utcnow()

                logger.info(
                    f"Starting refresh {job.id} ({job.trigger.value}) "
                    f"for {request.start_date}..{request.end_date}"
                )

                snapshot = await self._source.fetch_snapshot(
                    request.start_date, request.end_date
                )
                job.records_fetched = len(snapshot)

                result = build_fraud_analytics(
                    snapshot,
                    high_frequency_threshold=request.high_frequency_threshold,
                    threshold_amount=request.threshold_amount,
                )
                self._publish(job, result)

        except asyncio.CancelledError:
            job.status = "cancelled"
            job.completed_at = _utcnow()
            logger.warning(f"Refresh {job.id} cancelled, keeping previous results")
            raise

        except Exception as e:
            job.status = "failed"
            job.errors.append(str(e))
            job.completed_at = _utcnow()
            logger.error(f"Refresh {job.id} failed: {e}")
            raise

        logger.info(
            f"Refresh {job.id} completed in {job.duration_seconds:.3f}s: "
            f"{job.records_fetched} records, {job.flags_raised} flags"
        )
        return job

    def _publish(self, job: RefreshJob, result: FraudAnalyticsData) -> None:
        """Replace the latest bundle wholesale."""
        job.result = result
        job.flags_raised = len(result.flags)
        job.status = "completed"
        job.completed_at = _utcnow()

        self._latest = result
        self._latest_job = job

    def _release(self, request: RefreshRequest, task: asyncio.Task) -> None:
        current = self._in_flight.get(request)
        if current is not None and current[0] is task:
            del self._in_flight[request]
        # Mark the exception retrieved; callers that awaited already saw it
        if not task.cancelled():
            task.exception()

    def _record(self, job: RefreshJob) -> None:
        self._jobs[job.id] = job
        while len(self._jobs) > self._max_jobs:
            oldest = next(iter(self._jobs))
            del self._jobs[oldest]

    async def start(self) -> None:
        """Start the periodic refresh loop (first run is immediate)."""
        if self.is_running:
            return
        logger.info(f"Starting refresh loop every {self.interval_seconds:.0f}s")
        self._loop_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop the periodic loop and cancel any in-flight refresh."""
        tasks = [task for task, _ in self._in_flight.values()]
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Refresh task ended with error during shutdown: {e}")

        logger.info("Refresh loop stopped")

    async def _refresh_loop(self) -> None:
        while True:
            start_date, end_date = self._date_range()
            try:
                await self.refresh(RefreshTrigger.TIMER, start_date, end_date)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Already recorded on the job; keep the loop alive
                logger.warning(f"Scheduled refresh failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def get_job(self, job_id: UUID) -> Optional[RefreshJob]:
        """Get a job by ID."""
        return self._jobs.get(job_id)

    def get_recent_jobs(self, limit: int = 10) -> list[RefreshJob]:
        """Get recent jobs, newest first."""
        jobs = list(self._jobs.values())
        jobs.reverse()
        return jobs[:limit]

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        jobs = list(self._jobs.values())
        completed = [j for j in jobs if j.status == "completed"]
        failed = [j for j in jobs if j.status == "failed"]

        avg_duration = 0.0
        if completed:
            durations = [j.duration_seconds for j in completed if j.duration_seconds]
            avg_duration = sum(durations) / len(durations) if durations else 0

        return {
            "total_jobs": len(jobs),
            "completed_jobs": len(completed),
            "failed_jobs": len(failed),
            "coalesced_requests": sum(j.coalesced_requests for j in jobs),
            "loop_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "average_duration_seconds": round(avg_duration, 3),
        }
