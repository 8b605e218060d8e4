"""
Tests for the profile and earnings ledger repositories.
"""

from datetime import date, timedelta

import pytest

from invest_platform.models import ProfileStatus
from invest_platform.services.accrual import AccrualJob, EarningsLedgerRepository, ProfileRepository
from invest_platform.services.accrual.types import LedgerEntry, ProfileUpdate, day_window

from .conftest import AS_OF, make_profile


@pytest.mark.asyncio
async def test_fetch_active_returns_snapshots_ordered_by_id(session_maker, seed):
    await seed(
        make_profile("b", plan="2", balance=5),
        make_profile("a", plan="1"),
        make_profile("z", status=ProfileStatus.INACTIVE),
    )

    async with session_maker() as session:
        profiles = await ProfileRepository().fetch_active(session)

    assert [p.id for p in profiles] == ["a", "b"]
    assert profiles[1].selected_plan == "2"
    assert profiles[1].balance == 5
    assert profiles[1].username == "user-b"


@pytest.mark.asyncio
async def test_apply_updates_increments_and_expires(session_maker, seed, fetch_profile):
    await seed(make_profile("a", balance=100, daily_earnings=10), make_profile("b", balance=7))

    async with session_maker() as session:
        touched = await ProfileRepository().apply_updates(
            session,
            [ProfileUpdate("a", amount=120)],
            [ProfileUpdate("b", expire=True)],
        )
        await session.commit()

    assert touched == 2
    a = await fetch_profile("a")
    assert (a.balance, a.daily_earnings) == (220, 130)
    b = await fetch_profile("b")
    assert (b.balance, b.status) == (7, ProfileStatus.INACTIVE)


@pytest.mark.asyncio
async def test_insert_entries_reports_only_inserted_users(session_maker, seed):
    await seed(make_profile("a"), make_profile("b"))
    ledger = EarningsLedgerRepository()
    day = AS_OF.date()

    def entry(user_id):
        return LedgerEntry(user_id, 120, "Daily earnings for Plan 1", day, AS_OF)

    async with session_maker() as session:
        first = await ledger.insert_entries(session, [entry("a")])
        second = await ledger.insert_entries(session, [entry("a"), entry("b")])
        await session.commit()

    assert first == {"a"}
    assert second == {"b"}


@pytest.mark.asyncio
async def test_insert_entries_with_nothing_to_insert(session_maker):
    async with session_maker() as session:
        assert await EarningsLedgerRepository().insert_entries(session, []) == set()


@pytest.mark.asyncio
async def test_fetch_paid_user_ids_covers_only_the_day(session_maker, seed):
    await seed(make_profile("a"), make_profile("b"))
    ledger = EarningsLedgerRepository()
    yesterday = AS_OF - timedelta(days=1)

    async with session_maker() as session:
        await ledger.insert_entries(session, [
            LedgerEntry("a", 120, "Daily earnings for Plan 1", AS_OF.date(), AS_OF),
            LedgerEntry("b", 120, "Daily earnings for Plan 1", yesterday.date(), yesterday),
        ])
        await session.commit()

    _, start, end = day_window(AS_OF)
    async with session_maker() as session:
        assert await ledger.fetch_paid_user_ids(session, start, end) == {"a"}


@pytest.mark.asyncio
async def test_daily_summaries_newest_first(session_maker, seed):
    await seed(make_profile("a", plan="1"), make_profile("b", plan="2"))
    job = AccrualJob(session_maker)
    await job.run(AS_OF - timedelta(days=1))
    await job.run(AS_OF)

    async with session_maker() as session:
        summaries = await EarningsLedgerRepository().daily_summaries(session, AS_OF.date(), days=7)
        only_today = await EarningsLedgerRepository().daily_summaries(session, AS_OF.date(), days=1)

    assert [s.earnings_date for s in summaries] == [date(2024, 5, 10), date(2024, 5, 9)]
    assert summaries[0].users_processed == 2
    assert summaries[0].total_distributed == 380
    assert summaries[0].first_processed_at is not None
    assert len(only_today) == 1
