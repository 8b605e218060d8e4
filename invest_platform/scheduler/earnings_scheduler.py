"""
Daily earnings scheduler.

Runs the accrual job once per UTC day at the configured hour and keeps
simple statistics for health checks. Overlapping runs with the API
or CLI trigger are harmless: the ledger pays each profile at most once
per day.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from invest_platform.core.config import settings
from invest_platform.core.database import get_session_maker
from invest_platform.core.exceptions import InvestPlatformException
from invest_platform.services.accrual import (
    AccrualJob,
    AccrualResult,
    AccrualRunTracker,
    run_tracked_accrual,
)


logger = structlog.get_logger(__name__)


class SchedulerStatus(Enum):
    """Status of the earnings scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_processed: int = 0
    last_expired: int = 0
    last_error: Optional[str] = None
    uptime_start: Optional[datetime] = None


RunCallable = Callable[[str], Awaitable[AccrualResult]]


async def _run_against_app_database(triggered_by: str) -> AccrualResult:
    session_maker = get_session_maker()
    job = AccrualJob(session_maker, timeout_seconds=settings.store_timeout_seconds)
    return await run_tracked_accrual(job, AccrualRunTracker(session_maker), triggered_by)


class DailyEarningsScheduler:
    """Triggers the accrual job once per UTC day at a fixed hour."""

    def __init__(
        self,
        run_accrual: RunCallable = _run_against_app_database,
        utc_hour: Optional[int] = None,
        check_interval: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        self.logger = logger.bind(service="daily_earnings_scheduler")

        self.run_accrual = run_accrual
        self.enabled = settings.scheduler_enabled if enabled is None else enabled
        self.utc_hour = settings.earnings_schedule_utc_hour if utc_hour is None else utc_hour
        self.check_interval = settings.scheduler_check_interval if check_interval is None else check_interval

        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.now(timezone.utc))
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None

        self.logger.info(
            "Daily earnings scheduler initialized",
            enabled=self.enabled,
            utc_hour=self.utc_hour,
            check_interval=self.check_interval
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def calculate_next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Calculate the next time earnings should be processed."""
        now = now or datetime.now(timezone.utc)

        next_run = now.replace(hour=self.utc_hour, minute=0, second=0, microsecond=0)

        # If the time has already passed today, schedule for tomorrow
        if next_run <= now:
            next_run += timedelta(days=1)

        return next_run

    def should_run_earnings(self, now: Optional[datetime] = None) -> bool:
        """Check if it's time to run: at or after the target hour, and not yet run today."""
        now = now or datetime.now(timezone.utc)

        if now.hour < self.utc_hour:
            return False

        if self.stats.last_run is None:
            return True

        return self.stats.last_run.date() < now.date()

    async def start(self):
        """Start the earnings scheduler."""
        if not self.enabled:
            self.logger.info("Earnings scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self.logger.info("Starting daily earnings scheduler")

        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self.stats.next_run = self.calculate_next_run_time()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info("Daily earnings scheduler started", next_run=self.stats.next_run.isoformat())

    async def stop(self):
        """Stop the earnings scheduler."""
        if self.status == SchedulerStatus.STOPPED:
            return

        self.logger.info("Stopping daily earnings scheduler")
        self._should_stop = True

        if self._scheduler_task and not self._scheduler_task.done():
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass

        self.status = SchedulerStatus.STOPPED
        self.logger.info("Daily earnings scheduler stopped")

    async def _scheduler_loop(self):
        """Main scheduler loop."""
        self.logger.info("Scheduler loop started")

        while not self._should_stop:
            try:
                if self.should_run_earnings():
                    await self._run_daily_earnings("scheduler")

                self.stats.next_run = self.calculate_next_run_time()
                await asyncio.sleep(self.check_interval)

            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break

            except Exception as e:
                self.logger.exception("Error in scheduler loop", error=str(e))
                self.status = SchedulerStatus.ERROR
                await asyncio.sleep(self.check_interval)
                self.status = SchedulerStatus.WAITING

        self.logger.info("Scheduler loop stopped")

    async def _run_daily_earnings(self, triggered_by: str) -> Optional[AccrualResult]:
        """Run accrual once and update statistics. Failures are retried on the next tick."""
        self.status = SchedulerStatus.PROCESSING
        self.stats.total_runs += 1

        try:
            result = await self.run_accrual(triggered_by)
        except InvestPlatformException as e:
            self.stats.failed_runs += 1
            self.stats.last_error = e.message
            self.status = SchedulerStatus.WAITING
            self.logger.error(
                "Daily earnings processing failed, retrying on the next check",
                error=e.message,
                code=e.code,
                total_runs=self.stats.total_runs,
                failed_runs=self.stats.failed_runs
            )
            return None

        self.stats.last_run = datetime.now(timezone.utc)
        self.stats.successful_runs += 1
        self.stats.last_processed = result.processed
        self.stats.last_expired = result.expired
        self.stats.last_error = None
        self.status = SchedulerStatus.WAITING

        self.logger.info(
            "Daily earnings processing completed",
            earnings_date=result.earnings_date.isoformat(),
            processed=result.processed,
            expired=result.expired
        )
        return result

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        return {
            "status": self.status.value,
            "enabled": self.enabled,
            "utc_hour": self.utc_hour,
            "stats": asdict(self.stats),
            "next_run": self.stats.next_run.isoformat() if self.stats.next_run else None
        }


# Global scheduler instance
_earnings_scheduler: Optional[DailyEarningsScheduler] = None


async def get_earnings_scheduler() -> DailyEarningsScheduler:
    """Get or create the global DailyEarningsScheduler instance."""
    global _earnings_scheduler
    if _earnings_scheduler is None:
        _earnings_scheduler = DailyEarningsScheduler()
    return _earnings_scheduler


async def shutdown_earnings_scheduler():
    """Stop the global scheduler if it was started."""
    global _earnings_scheduler
    if _earnings_scheduler:
        await _earnings_scheduler.stop()
        _earnings_scheduler = None
