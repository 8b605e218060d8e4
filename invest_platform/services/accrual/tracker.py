"""
Daily earnings run tracking.

Each invocation of the accrual job gets a daily_earnings_runs row so
operators can see when runs happened, who triggered them and how they
ended. Tracking never decides who gets paid; a failure to record a run
is logged and the accrual result still stands.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invest_platform.core.exceptions import InvestPlatformException
from invest_platform.models.daily_earnings import DailyEarningsRun, EarningsRunStatus
from .job import AccrualJob
from .types import AccrualResult, as_utc


logger = structlog.get_logger(__name__)

# Same failures the job treats as store errors
TRACKING_ERRORS = (SQLAlchemyError, OSError)


class AccrualRunTracker:
    """Records the lifecycle of accrual runs."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self.logger = logger.bind(service="accrual_run_tracker")

    async def start_run(self, earnings_date: date, triggered_by: str) -> int:
        """Create a run record in started state and return its id."""
        async with self.session_maker() as session:
            run = DailyEarningsRun(
                earnings_date=earnings_date,
                status=EarningsRunStatus.STARTED.value,
                triggered_by=triggered_by,
                started_at=datetime.now(timezone.utc),
            )
            session.add(run)
            await session.flush()
            run_id = run.id
            await session.commit()

            self.logger.info(
                "Daily earnings run started",
                run_id=run_id,
                earnings_date=earnings_date.isoformat(),
                triggered_by=triggered_by
            )
            return run_id

    async def complete_run(self, run_id: int, result: AccrualResult) -> None:
        """Mark a run completed with its counts."""
        await self._finish(
            run_id,
            status=EarningsRunStatus.COMPLETED.value,
            processed=result.processed,
            expired=result.expired,
            skipped=result.skipped,
            already_paid=result.already_paid,
        )

    async def fail_run(self, run_id: int, error_message: str) -> None:
        """Mark a run failed."""
        await self._finish(
            run_id,
            status=EarningsRunStatus.FAILED.value,
            error_message=error_message,
        )

    async def recent_runs(self, limit: int = 20) -> List[DailyEarningsRun]:
        """Get the most recent runs, newest first."""
        async with self.session_maker() as session:
            result = await session.execute(
                select(DailyEarningsRun)
                .order_by(desc(DailyEarningsRun.started_at), desc(DailyEarningsRun.id))
                .limit(limit)
            )
            return list(result.scalars().all())

    async def _finish(self, run_id: int, **values) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(DailyEarningsRun)
                .where(DailyEarningsRun.id == run_id)
                .values(completed_at=datetime.now(timezone.utc), **values)
            )
            await session.commit()

        self.logger.info("Daily earnings run finished", run_id=run_id, status=values["status"])


async def run_tracked_accrual(
    job: AccrualJob,
    tracker: AccrualRunTracker,
    triggered_by: str,
    as_of: Optional[datetime] = None,
) -> AccrualResult:
    """
    Run the accrual job with a run record around it.

    This is the single entry point behind the API trigger, the CLI and the
    scheduler; each supplies only `triggered_by` and optionally `as_of`.
    """
    as_of = as_utc(as_of or datetime.now(timezone.utc))

    run_id: Optional[int] = None
    try:
        run_id = await tracker.start_run(as_of.date(), triggered_by)
    except TRACKING_ERRORS as e:
        logger.error("Failed to record run start", triggered_by=triggered_by, error=str(e))

    try:
        result = await job.run(as_of)
    except InvestPlatformException as e:
        if run_id is not None:
            try:
                await tracker.fail_run(run_id, e.message)
            except TRACKING_ERRORS as track_error:
                logger.error("Failed to record run failure", run_id=run_id, error=str(track_error))
        raise

    if run_id is not None:
        try:
            await tracker.complete_run(run_id, result)
        except TRACKING_ERRORS as e:
            logger.error("Failed to record run completion", run_id=run_id, error=str(e))

    return result
