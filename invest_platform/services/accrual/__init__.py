"""
Daily earnings accrual: plan rules, stores, the job and its run tracking.
"""

from .job import AccrualJob, run_daily_accrual
from .plans import DEFAULT_PLAN_RULES, PlanRule, PlanRules
from .repositories import EarningsLedgerRepository, ProfileRepository
from .tracker import AccrualRunTracker, run_tracked_accrual
from .types import AccrualResult, DailySummary

__all__ = [
    "AccrualJob",
    "run_daily_accrual",
    "DEFAULT_PLAN_RULES",
    "PlanRule",
    "PlanRules",
    "EarningsLedgerRepository",
    "ProfileRepository",
    "AccrualRunTracker",
    "run_tracked_accrual",
    "AccrualResult",
    "DailySummary",
]
