"""
Profile model - an investor account with its plan selection and balances.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, BigInteger, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


class ProfileStatus(str, Enum):
    """Lifecycle status of a profile."""
    PENDING_INVESTMENT = "pending_investment"
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    INACTIVE = "inactive"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class Profile(BaseModel, TimestampMixin):
    """Investor profile. The accrual job writes balance, daily_earnings and status only."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="Opaque user identifier"
    )

    username: Mapped[Optional[str]] = mapped_column(
        String(64),
        comment="Display name"
    )

    balance: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Withdrawable accrued amount in PKR"
    )

    daily_earnings: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Cumulative daily earnings credited in PKR"
    )

    referral_earnings: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Cumulative referral bonuses in PKR"
    )

    total_investment: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Sum of approved investments in PKR"
    )

    status: Mapped[ProfileStatus] = mapped_column(
        SQLEnum(
            ProfileStatus,
            name="profilestatus",
            values_callable=lambda statuses: [s.value for s in statuses]
        ),
        default=ProfileStatus.PENDING_INVESTMENT,
        comment="Lifecycle status"
    )

    selected_plan: Mapped[Optional[str]] = mapped_column(
        String(16),
        comment="Plan identifier chosen at investment time"
    )

    plan_start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="When the current plan became active"
    )

    referred_by: Mapped[Optional[str]] = mapped_column(
        String(36),
        comment="Profile id of the referrer"
    )

    earnings_history: Mapped[List["EarningsHistory"]] = relationship(
        "EarningsHistory",
        back_populates="profile"
    )

    __table_args__ = (
        Index("idx_profiles_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, status={self.status}, plan={self.selected_plan})>"

    @property
    def is_active(self) -> bool:
        return self.status == ProfileStatus.ACTIVE
