"""
API dependencies for FastAPI endpoints.
Provides the accrual job, run tracker and trigger authorization.
"""

import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import structlog

from invest_platform.core.config import settings
from invest_platform.core.database import get_session_maker
from invest_platform.core.exceptions import AuthorizationError
from invest_platform.scheduler.earnings_scheduler import DailyEarningsScheduler, get_earnings_scheduler
from invest_platform.services.accrual import (
    AccrualJob,
    AccrualRunTracker,
    DEFAULT_PLAN_RULES,
    EarningsLedgerRepository,
    PlanRules,
)


logger = structlog.get_logger(__name__)


# auto_error=False so a missing header reaches our handler and returns {error} with 401
cron_auth_scheme = HTTPBearer(auto_error=False)


def get_db_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session maker for the application database."""
    return get_session_maker()


def get_plan_rules() -> PlanRules:
    """Plan table used by the accrual job."""
    return DEFAULT_PLAN_RULES


def get_cron_secret() -> str:
    """Shared secret expected on the trigger endpoint."""
    return settings.cron_secret


def get_ledger_repository() -> EarningsLedgerRepository:
    return EarningsLedgerRepository()


def get_accrual_job(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
    plan_rules: PlanRules = Depends(get_plan_rules),
    ledger: EarningsLedgerRepository = Depends(get_ledger_repository),
) -> AccrualJob:
    return AccrualJob(
        session_maker,
        plan_rules=plan_rules,
        ledger=ledger,
        timeout_seconds=settings.store_timeout_seconds,
    )


async def get_scheduler() -> DailyEarningsScheduler:
    """The scheduler hosted by this API process."""
    return await get_earnings_scheduler()


def get_run_tracker(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
) -> AccrualRunTracker:
    return AccrualRunTracker(session_maker)


async def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_auth_scheme),
    expected_secret: str = Depends(get_cron_secret),
) -> None:
    """
    Require `Authorization: Bearer <CRON_SECRET>`.

    Raises AuthorizationError (401) before any store is touched.
    """
    token = credentials.credentials.strip() if credentials else ""

    if not token or not expected_secret or not hmac.compare_digest(
        token.encode("utf-8"), expected_secret.encode("utf-8")
    ):
        logger.warning(
            "Daily earnings trigger authorization failed",
            has_token=bool(token)
        )
        raise AuthorizationError()
