"""
Repositories for the stores the accrual job reads and writes.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Sequence, Set

import structlog
from sqlalchemy import Insert, Table, bindparam, desc, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from invest_platform.core.exceptions import DatabaseError
from invest_platform.models.earnings import EarningsHistory, DAILY_EARNINGS
from invest_platform.models.profile import Profile, ProfileStatus
from .types import DailySummary, LedgerEntry, ProfileSnapshot, ProfileUpdate


logger = structlog.get_logger(__name__)


_CONFLICT_AWARE_INSERTS: Dict[str, Callable[[Table], Insert]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ProfileRepository:
    """Reads active profiles and applies staged balance/status mutations."""

    def __init__(self):
        self.logger = logger.bind(service="profile_repository")

    async def fetch_active(self, session: AsyncSession) -> List[ProfileSnapshot]:
        """Get every profile in active status with its plan fields."""
        result = await session.execute(
            select(
                Profile.id,
                Profile.balance,
                Profile.daily_earnings,
                Profile.selected_plan,
                Profile.plan_start_date,
                Profile.username,
            )
            .where(Profile.status == ProfileStatus.ACTIVE)
            .order_by(Profile.id)
        )

        profiles = [
            ProfileSnapshot(
                id=row.id,
                balance=row.balance or 0,
                daily_earnings=row.daily_earnings or 0,
                selected_plan=row.selected_plan,
                plan_start_date=row.plan_start_date,
                username=row.username,
            )
            for row in result
        ]

        self.logger.info("Retrieved active profiles", count=len(profiles))
        return profiles

    async def apply_updates(
        self,
        session: AsyncSession,
        payouts: Sequence[ProfileUpdate],
        expirations: Sequence[ProfileUpdate],
    ) -> int:
        """
        Apply payouts as increments and expiries as status transitions, keyed by id.

        Returns the number of profiles touched.
        """
        table = Profile.__table__

        if payouts:
            await session.execute(
                update(table)
                .where(table.c.id == bindparam("b_id"))
                .values(
                    balance=func.coalesce(table.c.balance, 0) + bindparam("b_amount"),
                    daily_earnings=func.coalesce(table.c.daily_earnings, 0) + bindparam("b_amount"),
                    updated_at=func.now(),
                ),
                [{"b_id": p.profile_id, "b_amount": p.amount} for p in payouts],
            )

        if expirations:
            await session.execute(
                update(table)
                .where(table.c.id.in_([e.profile_id for e in expirations]))
                .values(status=ProfileStatus.INACTIVE, updated_at=func.now())
            )

        return len(payouts) + len(expirations)


class EarningsLedgerRepository:
    """Reads and appends earnings_history rows."""

    def __init__(self, batch_size: int = 500):
        self.batch_size = batch_size
        self.logger = logger.bind(service="earnings_ledger_repository")

    async def fetch_paid_user_ids(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> Set[str]:
        """Get ids of profiles that already have a daily_earnings entry in [start, end)."""
        result = await session.execute(
            select(EarningsHistory.user_id)
            .where(EarningsHistory.type == DAILY_EARNINGS)
            .where(EarningsHistory.created_at >= start)
            .where(EarningsHistory.created_at < end)
            .distinct()
        )
        paid = set(result.scalars().all())

        self.logger.info("Profiles already paid for the day", count=len(paid), day_start=start.isoformat())
        return paid

    async def insert_entries(self, session: AsyncSession, entries: Iterable[LedgerEntry]) -> Set[str]:
        """
        Insert daily_earnings rows, skipping any that hit the (user_id, type, earnings_date) key.

        Returns the user ids whose row was actually inserted.
        """
        rows = [
            {
                "user_id": entry.user_id,
                "amount": entry.amount,
                "type": DAILY_EARNINGS,
                "description": entry.description,
                "earnings_date": entry.earnings_date,
                "created_at": entry.created_at,
            }
            for entry in entries
        ]
        if not rows:
            return set()

        dialect = session.get_bind().dialect.name
        insert_factory = _CONFLICT_AWARE_INSERTS.get(dialect)
        if insert_factory is None:
            raise DatabaseError(
                f"Ledger inserts are not supported on {dialect}",
                {"dialect": dialect}
            )

        table = EarningsHistory.__table__
        inserted: Set[str] = set()

        for offset in range(0, len(rows), self.batch_size):
            chunk = rows[offset:offset + self.batch_size]
            result = await session.execute(
                insert_factory(table)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=["user_id", "type", "earnings_date"])
                .returning(table.c.user_id)
            )
            inserted.update(result.scalars().all())

        return inserted

    async def daily_summaries(self, session: AsyncSession, today: date, days: int = 7) -> List[DailySummary]:
        """Aggregate daily_earnings rows per day for the last `days` days, newest first."""
        since = today - timedelta(days=days - 1)

        result = await session.execute(
            select(
                EarningsHistory.earnings_date,
                func.count(func.distinct(EarningsHistory.user_id)).label("users_processed"),
                func.sum(EarningsHistory.amount).label("total_distributed"),
                func.min(EarningsHistory.created_at).label("first_processed_at"),
                func.max(EarningsHistory.created_at).label("last_processed_at"),
            )
            .where(EarningsHistory.type == DAILY_EARNINGS)
            .where(EarningsHistory.earnings_date >= since)
            .where(EarningsHistory.earnings_date <= today)
            .group_by(EarningsHistory.earnings_date)
            .order_by(desc(EarningsHistory.earnings_date))
        )

        return [
            DailySummary(
                earnings_date=row.earnings_date,
                users_processed=row.users_processed,
                total_distributed=int(row.total_distributed or 0),
                first_processed_at=row.first_processed_at,
                last_processed_at=row.last_processed_at,
            )
            for row in result
        ]
