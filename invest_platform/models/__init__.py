"""
Database models for the invest platform backend.
"""

from .base import Base, BaseModel, TimestampMixin
from .profile import Profile, ProfileStatus
from .earnings import EarningsHistory, DAILY_EARNINGS, REFERRAL_BONUS
from .daily_earnings import DailyEarningsRun, EarningsRunStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Profile",
    "ProfileStatus",
    "EarningsHistory",
    "DAILY_EARNINGS",
    "REFERRAL_BONUS",
    "DailyEarningsRun",
    "EarningsRunStatus",
]
