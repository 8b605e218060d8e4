"""
Daily earnings accrual job.

Runs once per UTC calendar day (scheduler, API trigger or CLI) and:
1. Loads every active profile with its plan selection
2. Loads the profiles that already have a daily_earnings entry for the day
3. Expires plans past their validity window, stages a payout for the rest
4. Writes ledger entries and profile updates in a single transaction

Re-running on the same day pays nobody twice: the exclusion set filters
profiles paid earlier, and the (user_id, type, earnings_date) key on the
ledger rejects whatever a concurrent run slipped past it.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Iterable, List, Optional, Set, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invest_platform.core.config import settings
from invest_platform.core.database import get_session_maker
from invest_platform.core.exceptions import StoreReadError, StoreWriteError, UnknownPlanError
from .plans import DEFAULT_PLAN_RULES, PlanRules
from .repositories import EarningsLedgerRepository, ProfileRepository
from .types import (
    AccrualBatch, AccrualResult, LedgerEntry, ProfileSnapshot, ProfileUpdate,
    as_utc, day_window
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

ONE_DAY = timedelta(days=1)
LEDGER_STORE = "earnings_history"
PROFILE_STORE = "profiles"


class AccrualJob:
    """Computes and applies one day's plan-based earnings."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        plan_rules: PlanRules = DEFAULT_PLAN_RULES,
        profiles: Optional[ProfileRepository] = None,
        ledger: Optional[EarningsLedgerRepository] = None,
        timeout_seconds: float = 30.0,
    ):
        self.session_maker = session_maker
        self.plan_rules = plan_rules
        self.profiles = profiles or ProfileRepository()
        self.ledger = ledger or EarningsLedgerRepository()
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(service="accrual_job")

    async def run(self, as_of: Optional[datetime] = None) -> AccrualResult:
        """
        Accrue earnings for the UTC calendar day of `as_of` (default: now).

        Raises:
            StoreReadError: profiles or ledger couldn't be read; nothing was written
            StoreWriteError: the write transaction failed and was rolled back
        """
        as_of = as_utc(as_of or datetime.now(timezone.utc))
        earnings_date, day_start, day_end = day_window(as_of)
        result = AccrualResult(earnings_date=earnings_date)

        self.logger.info(
            "Starting daily earnings process",
            earnings_date=earnings_date.isoformat(),
            as_of=as_of.isoformat()
        )

        async with self.session_maker() as session:
            profiles = await self._read(PROFILE_STORE, self.profiles.fetch_active(session))
            if not profiles:
                self.logger.info("No active users to process")
                return result

            result.active_profiles = len(profiles)

            paid_ids = await self._read(
                LEDGER_STORE,
                self.ledger.fetch_paid_user_ids(session, day_start, day_end)
            )

            batch = self.plan_batch(profiles, paid_ids, as_of, earnings_date)
            result.skipped = batch.skipped
            result.already_paid = batch.already_paid

            if batch.is_empty:
                self.logger.info("No users to update", already_paid=batch.already_paid, skipped=batch.skipped)
                return result

            staged = {"processed": len(batch.payouts), "expired": len(batch.expirations)}
            try:
                inserted = await self._write(
                    LEDGER_STORE, self.ledger.insert_entries(session, batch.entries), staged
                )
                payouts = self._drop_conflicts(batch, inserted)
                await self._write(
                    PROFILE_STORE,
                    self.profiles.apply_updates(session, payouts, batch.expirations),
                    staged
                )
                await self._write(f"{PROFILE_STORE} and {LEDGER_STORE}", session.commit(), staged)
            except StoreWriteError as e:
                try:
                    await session.rollback()
                except (SQLAlchemyError, OSError) as rollback_error:
                    # Pool reset on session close discards the transaction
                    self.logger.error(
                        "Rollback after failed write also failed",
                        store=e.store,
                        error=str(rollback_error)
                    )
                self.logger.error(
                    "Daily earnings write failed, transaction rolled back",
                    store=e.store,
                    error=e.message,
                    **staged
                )
                raise

        result.processed = len(payouts)
        result.expired = len(batch.expirations)
        result.already_paid = batch.already_paid
        result.total_updates = result.processed + result.expired
        result.history_entries = len(inserted)

        self.logger.info(
            "Daily earnings process completed",
            earnings_date=earnings_date.isoformat(),
            processed=result.processed,
            expired=result.expired,
            skipped=result.skipped,
            already_paid=result.already_paid
        )
        return result

    def plan_batch(
        self,
        profiles: Iterable[ProfileSnapshot],
        paid_ids: Set[str],
        as_of: datetime,
        earnings_date: date,
    ) -> AccrualBatch:
        """Decide, without touching any store, what each profile gets for the day."""
        batch = AccrualBatch()

        for profile in profiles:
            if profile.id in paid_ids:
                self.logger.debug("User already processed today, skipping", user_id=profile.id)
                batch.already_paid += 1
                continue

            try:
                plan = self.plan_rules.resolve(profile.selected_plan)
            except UnknownPlanError as warning:
                self.logger.warning(
                    "Unknown plan on active profile, skipping",
                    user_id=profile.id,
                    plan_id=warning.plan_id,
                    code=warning.code
                )
                batch.skipped += 1
                continue

            # Profiles without a start date have nothing to expire against; they are still paid
            if profile.plan_start_date is not None:
                days_since_start = (as_of - as_utc(profile.plan_start_date)) // ONE_DAY
                if days_since_start >= plan.validity_days:
                    self.logger.info(
                        "Plan expired, marking profile inactive",
                        user_id=profile.id,
                        days_since_start=days_since_start,
                        validity_days=plan.validity_days
                    )
                    batch.expirations.append(ProfileUpdate(profile.id, expire=True))
                    continue

            batch.payouts.append(ProfileUpdate(profile.id, amount=plan.daily_return))
            batch.entries.append(LedgerEntry(
                user_id=profile.id,
                amount=plan.daily_return,
                description=f"Daily earnings for Plan {profile.selected_plan}",
                earnings_date=earnings_date,
                created_at=as_of,
            ))
            self.logger.debug(
                "Payout staged",
                user_id=profile.id,
                amount=plan.daily_return,
                plan_id=plan.plan_id
            )

        return batch

    def _drop_conflicts(self, batch: AccrualBatch, inserted: Set[str]) -> List[ProfileUpdate]:
        """Keep payouts whose ledger row went in; the rest were paid by another run."""
        payouts = [p for p in batch.payouts if p.profile_id in inserted]
        conflicts = len(batch.payouts) - len(payouts)
        if conflicts:
            self.logger.warning(
                "Ledger entries already existed for the day, skipping their payouts",
                conflicts=conflicts
            )
            batch.already_paid += conflicts
        return payouts

    async def _read(self, store: str, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.error("Store read timed out", store=store, timeout=self.timeout_seconds)
            raise StoreReadError(store, f"timed out after {self.timeout_seconds}s")
        except (SQLAlchemyError, OSError) as e:
            self.logger.error("Store read failed", store=store, error=str(e))
            raise StoreReadError(store, str(e)) from e

    async def _write(self, store: str, operation: Awaitable[T], staged: dict) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise StoreWriteError(store, f"timed out after {self.timeout_seconds}s", staged)
        except (SQLAlchemyError, OSError) as e:
            raise StoreWriteError(store, str(e), staged) from e


async def run_daily_accrual(
    as_of: Optional[datetime] = None,
    *,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    plan_rules: PlanRules = DEFAULT_PLAN_RULES,
) -> AccrualResult:
    """Run the accrual job against the application database."""
    job = AccrualJob(
        session_maker or get_session_maker(),
        plan_rules=plan_rules,
        timeout_seconds=settings.store_timeout_seconds,
    )
    return await job.run(as_of)
