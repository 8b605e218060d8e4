"""
Test database models.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from invest_platform.models import (
    DailyEarningsRun,
    EarningsHistory,
    EarningsRunStatus,
    Profile,
    ProfileStatus,
    DAILY_EARNINGS,
)

from .conftest import AS_OF, make_profile


@pytest.mark.asyncio
async def test_profile_model(session_maker, seed):
    """Test Profile creation and defaults."""
    async with session_maker() as session:
        session.add(Profile(id="p1", selected_plan="1"))
        await session.commit()

    async with session_maker() as session:
        profile = await session.get(Profile, "p1")

    assert profile.status == ProfileStatus.PENDING_INVESTMENT
    assert not profile.is_active
    assert profile.balance == 0
    assert profile.to_dict()["selected_plan"] == "1"
    assert profile.created_at is not None


@pytest.mark.asyncio
async def test_one_daily_entry_per_user_per_day(session_maker, seed):
    """The ledger key rejects a second daily_earnings row for the same day."""
    await seed(make_profile("p1"))
    day = AS_OF.date()

    def entry():
        return EarningsHistory(
            user_id="p1",
            amount=120,
            type=DAILY_EARNINGS,
            description="Daily earnings for Plan 1",
            earnings_date=day,
            created_at=AS_OF,
        )

    await seed(entry())

    with pytest.raises(IntegrityError):
        await seed(entry())


def test_run_duration():
    started = datetime(2024, 5, 10, 0, 0, tzinfo=timezone.utc)
    run = DailyEarningsRun(
        earnings_date=started.date(),
        status=EarningsRunStatus.COMPLETED.value,
        triggered_by="scheduler",
        started_at=started,
        completed_at=started + timedelta(seconds=42),
    )

    assert run.is_complete
    assert run.duration_seconds == 42.0

    run.completed_at = None
    assert run.duration_seconds is None
