"""
Tests for the daily earnings scheduler.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from invest_platform.core.exceptions import StoreWriteError
from invest_platform.scheduler.earnings_scheduler import DailyEarningsScheduler, SchedulerStatus
from invest_platform.services.accrual import AccrualResult


class FakeAccrual:
    """Stands in for the tracked accrual run."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error
        self.called = asyncio.Event()

    async def __call__(self, triggered_by: str) -> AccrualResult:
        self.calls.append(triggered_by)
        self.called.set()
        if self.error:
            raise self.error
        return AccrualResult(earnings_date=date(2024, 5, 10), processed=3, expired=1, total_updates=4)


def make_scheduler(run_accrual=None, utc_hour=2, enabled=True):
    return DailyEarningsScheduler(
        run_accrual=run_accrual or FakeAccrual(),
        utc_hour=utc_hour,
        check_interval=3600,
        enabled=enabled,
    )


def test_next_run_later_today():
    scheduler = make_scheduler(utc_hour=12)
    now = datetime(2024, 5, 10, 10, 30, tzinfo=timezone.utc)

    assert scheduler.calculate_next_run_time(now) == datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def test_next_run_tomorrow_once_hour_has_passed():
    scheduler = make_scheduler(utc_hour=2)
    now = datetime(2024, 5, 10, 2, 0, tzinfo=timezone.utc)

    assert scheduler.calculate_next_run_time(now) == datetime(2024, 5, 11, 2, 0, tzinfo=timezone.utc)


def test_should_run_only_once_per_day_after_hour():
    scheduler = make_scheduler(utc_hour=2)
    today = datetime(2024, 5, 10, tzinfo=timezone.utc)

    assert not scheduler.should_run_earnings(today + timedelta(hours=1))
    assert scheduler.should_run_earnings(today + timedelta(hours=3))

    scheduler.stats.last_run = today + timedelta(hours=2, minutes=1)
    assert not scheduler.should_run_earnings(today + timedelta(hours=23))

    assert scheduler.should_run_earnings(today + timedelta(days=1, hours=2))


@pytest.mark.asyncio
async def test_run_updates_stats():
    scheduler = make_scheduler()

    result = await scheduler._run_daily_earnings("scheduler")

    assert result.processed == 3
    assert scheduler.stats.successful_runs == 1
    assert scheduler.stats.last_processed == 3
    assert scheduler.stats.last_expired == 1
    assert scheduler.stats.last_run is not None
    assert scheduler.status == SchedulerStatus.WAITING


@pytest.mark.asyncio
async def test_failed_run_is_counted_and_retried_later():
    fake = FakeAccrual(error=StoreWriteError("profiles", "connection reset"))
    scheduler = make_scheduler(run_accrual=fake)

    assert await scheduler._run_daily_earnings("scheduler") is None

    assert scheduler.stats.failed_runs == 1
    assert scheduler.stats.last_run is None
    assert scheduler.stats.last_error == "Failed to write profiles: connection reset"
    assert scheduler.status == SchedulerStatus.WAITING
    assert scheduler.should_run_earnings(datetime(2024, 5, 10, 3, tzinfo=timezone.utc))


@pytest.mark.asyncio
async def test_disabled_scheduler_does_not_start():
    scheduler = make_scheduler(enabled=False)

    await scheduler.start()

    assert scheduler.status == SchedulerStatus.STOPPED
    assert scheduler.get_status()["enabled"] is False


@pytest.mark.asyncio
async def test_loop_runs_accrual_and_stops():
    fake = FakeAccrual()
    scheduler = make_scheduler(run_accrual=fake, utc_hour=0)

    async with scheduler:
        await asyncio.wait_for(fake.called.wait(), timeout=1)
        assert scheduler.get_status()["next_run"] is not None

    assert fake.calls == ["scheduler"]
    assert scheduler.status == SchedulerStatus.STOPPED


@pytest.mark.asyncio
async def test_success_after_failure_clears_last_error():
    fake = FakeAccrual(error=StoreWriteError("profiles", "connection reset"))
    scheduler = make_scheduler(run_accrual=fake)
    await scheduler._run_daily_earnings("scheduler")

    fake.error = None
    await scheduler._run_daily_earnings("scheduler")

    status = scheduler.get_status()
    assert status["status"] == "waiting"
    assert status["stats"]["last_error"] is None
    assert status["stats"]["successful_runs"] == 1
    assert fake.calls == ["scheduler", "scheduler"]
