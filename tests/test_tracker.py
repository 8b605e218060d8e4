"""
Tests for accrual run tracking.
"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from invest_platform.core.exceptions import StoreReadError
from invest_platform.models import EarningsRunStatus
from invest_platform.services.accrual import AccrualJob, AccrualRunTracker, run_tracked_accrual

from .conftest import AS_OF, make_profile


@pytest.fixture
def tracker(session_maker):
    return AccrualRunTracker(session_maker)


@pytest.mark.asyncio
async def test_successful_run_is_recorded(session_maker, tracker, seed):
    await seed(make_profile("x"), make_profile("y", plan="2", days_since_start=61), make_profile("z", plan="8"))

    result = await run_tracked_accrual(AccrualJob(session_maker), tracker, "cli", AS_OF)

    [run] = await tracker.recent_runs()
    assert run.status == EarningsRunStatus.COMPLETED.value
    assert run.triggered_by == "cli"
    assert run.earnings_date == date(2024, 5, 10)
    assert (run.processed, run.expired, run.skipped, run.already_paid) == (1, 1, 1, 0)
    assert run.is_complete
    assert run.completed_at is not None
    assert result.processed == 1


@pytest.mark.asyncio
async def test_failed_run_is_recorded_and_reraised(session_maker, tracker, seed, monkeypatch):
    await seed(make_profile("x"))
    job = AccrualJob(session_maker)

    async def db_down(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(job.profiles, "fetch_active", db_down)

    with pytest.raises(StoreReadError):
        await run_tracked_accrual(job, tracker, "api", AS_OF)

    [run] = await tracker.recent_runs()
    assert run.status == EarningsRunStatus.FAILED.value
    assert "Failed to read profiles" in run.error_message


@pytest.mark.asyncio
async def test_tracking_failure_does_not_fail_accrual(session_maker, tracker, seed, fetch_profile, monkeypatch):
    await seed(make_profile("x"))

    async def broken_start(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(tracker, "start_run", broken_start)

    result = await run_tracked_accrual(AccrualJob(session_maker), tracker, "scheduler", AS_OF)

    assert result.processed == 1
    assert (await fetch_profile("x")).balance == 120
    assert await tracker.recent_runs() == []


@pytest.mark.asyncio
async def test_recent_runs_newest_first_with_limit(session_maker, tracker):
    for day in (1, 2, 3):
        run_id = await tracker.start_run(date(2024, 5, day), "scheduler")
        await tracker.fail_run(run_id, "boom")

    runs = await tracker.recent_runs(limit=2)

    assert [r.earnings_date.day for r in runs] == [3, 2]


def _unreachable_session_maker():
    raise ConnectionRefusedError(111, "Connect call failed")


@pytest.mark.asyncio
async def test_unreachable_tracking_store_does_not_block_accrual(session_maker, seed, fetch_profile):
    await seed(make_profile("x"))
    tracker = AccrualRunTracker(_unreachable_session_maker)

    result = await run_tracked_accrual(AccrualJob(session_maker), tracker, "cli", AS_OF)

    assert result.processed == 1
    assert (await fetch_profile("x")).balance == 120


@pytest.mark.asyncio
async def test_job_error_wins_over_tracking_error(session_maker, tracker, seed, monkeypatch):
    await seed(make_profile("x"))
    job = AccrualJob(session_maker)

    async def db_down(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    async def tracking_down(*args, **kwargs):
        raise ConnectionResetError(104, "Connection reset by peer")

    monkeypatch.setattr(job.profiles, "fetch_active", db_down)
    monkeypatch.setattr(tracker, "fail_run", tracking_down)

    with pytest.raises(StoreReadError):
        await run_tracked_accrual(job, tracker, "api", AS_OF)

    [run] = await tracker.recent_runs()
    assert run.status == EarningsRunStatus.STARTED.value
