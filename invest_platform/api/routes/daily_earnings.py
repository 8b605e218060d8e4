"""
Daily earnings routes: trigger, liveness and monitoring.
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import structlog

from invest_platform.api.dependencies import (
    get_accrual_job,
    get_db_session_maker,
    get_ledger_repository,
    get_run_tracker,
    get_scheduler,
    require_cron_secret,
)
from invest_platform.api.schemas.common import ErrorResponse
from invest_platform.api.schemas.daily_earnings import (
    DailyEarningsResponse,
    DailyEarningsStatus,
    DailySummaryItem,
    DailySummaryResponse,
    EarningsRunItem,
    SchedulerStatusResponse,
)
from invest_platform.scheduler.earnings_scheduler import DailyEarningsScheduler
from invest_platform.services.accrual import (
    AccrualJob,
    AccrualRunTracker,
    EarningsLedgerRepository,
    run_tracked_accrual,
)


logger = structlog.get_logger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing or wrong bearer secret"},
    500: {"model": ErrorResponse, "description": "Accrual failed; safe to retry"},
}


@router.post(
    "",
    response_model=DailyEarningsResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_cron_secret)],
    summary="Trigger Daily Earnings",
    description="Accrue today's plan earnings for every active profile. Safe to re-run the same day."
)
async def trigger_daily_earnings(
    job: AccrualJob = Depends(get_accrual_job),
    tracker: AccrualRunTracker = Depends(get_run_tracker),
):
    logger.info("Daily earnings triggered via API")

    result = await run_tracked_accrual(job, tracker, triggered_by="api")
    return DailyEarningsResponse.from_result(result)


@router.get(
    "",
    response_model=DailyEarningsStatus,
    summary="Daily Earnings Status",
    description="Liveness check for the trigger endpoint; no side effects"
)
async def daily_earnings_status():
    return DailyEarningsStatus()


@router.get(
    "/summary",
    response_model=DailySummaryResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_cron_secret)],
    summary="Daily Earnings Summary",
    description="Profiles paid and amount distributed per day, newest first"
)
async def daily_earnings_summary(
    days: int = Query(7, ge=1, le=90, description="Number of days to include"),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
    ledger: EarningsLedgerRepository = Depends(get_ledger_repository),
):
    today = datetime.now(timezone.utc).date()

    async with session_maker() as session:
        summaries = await ledger.daily_summaries(session, today, days)

    return DailySummaryResponse(
        has_run_today=bool(summaries) and summaries[0].earnings_date == today,
        summaries=[DailySummaryItem.from_summary(s) for s in summaries],
    )


@router.get(
    "/runs",
    response_model=List[EarningsRunItem],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_cron_secret)],
    summary="Daily Earnings Runs",
    description="Recently recorded accrual runs, newest first"
)
async def daily_earnings_runs(
    limit: int = Query(20, ge=1, le=200),
    tracker: AccrualRunTracker = Depends(get_run_tracker),
):
    runs = await tracker.recent_runs(limit)
    return [EarningsRunItem.model_validate(run) for run in runs]


@router.get(
    "/scheduler",
    response_model=SchedulerStatusResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_cron_secret)],
    summary="Scheduler Status",
    description="State and run statistics of the in-process daily scheduler"
)
async def daily_earnings_scheduler_status(
    scheduler: DailyEarningsScheduler = Depends(get_scheduler),
):
    return SchedulerStatusResponse(**scheduler.get_status())
