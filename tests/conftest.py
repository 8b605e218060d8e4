"""
Shared fixtures: an in-memory SQLite database per test and profile seeding helpers.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from invest_platform.models import Base, EarningsHistory, Profile, ProfileStatus, REFERRAL_BONUS


AS_OF = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def make_profile(
    profile_id: str,
    plan: Optional[str] = "1",
    days_since_start: Optional[int] = 10,
    status: ProfileStatus = ProfileStatus.ACTIVE,
    balance: int = 0,
    daily_earnings: int = 0,
    as_of: datetime = AS_OF,
) -> Profile:
    """Build a profile whose plan started `days_since_start` days before `as_of`."""
    return Profile(
        id=profile_id,
        username=f"user-{profile_id}",
        balance=balance,
        daily_earnings=daily_earnings,
        referral_earnings=0,
        total_investment=0,
        status=status,
        selected_plan=plan,
        plan_start_date=None if days_since_start is None else as_of - timedelta(days=days_since_start),
    )



def make_referral_row(user_id: str, amount: int, referred_id: str) -> EarningsHistory:
    """A referral bonus ledger row; these carry no earnings_date."""
    return EarningsHistory(
        user_id=user_id,
        amount=amount,
        type=REFERRAL_BONUS,
        description=f"Referral bonus for {referred_id}",
    )

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seed(session_maker):
    """Insert rows and commit. Usage: await seed(make_profile("a"), ...)."""
    async def _seed(*rows):
        async with session_maker() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


@pytest_asyncio.fixture
async def fetch_profile(session_maker):
    async def _fetch(profile_id: str) -> Profile:
        async with session_maker() as session:
            return await session.get(Profile, profile_id)

    return _fetch


@pytest_asyncio.fixture
async def fetch_ledger(session_maker):
    async def _fetch(user_id: Optional[str] = None):
        query = select(EarningsHistory).order_by(EarningsHistory.id)
        if user_id is not None:
            query = query.where(EarningsHistory.user_id == user_id)
        async with session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    return _fetch
