"""
Earnings ledger model. Rows are append-only audit records of payouts.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, BigInteger, Date, DateTime, ForeignKey, Index, Text,
    UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel


DAILY_EARNINGS = "daily_earnings"
REFERRAL_BONUS = "referral_bonus"


class EarningsHistory(BaseModel):
    """Immutable ledger entry for a single payout event."""

    __tablename__ = "earnings_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        comment="Credited profile"
    )

    amount: Mapped[int] = mapped_column(
        BigInteger,
        comment="Amount credited in PKR"
    )

    type: Mapped[str] = mapped_column(
        String(32),
        comment="Entry type (daily_earnings, referral_bonus)"
    )

    description: Mapped[Optional[str]] = mapped_column(Text)

    earnings_date: Mapped[Optional[date]] = mapped_column(
        Date,
        comment="UTC calendar day paid for; set on daily_earnings rows"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    profile: Mapped["Profile"] = relationship(
        "Profile",
        back_populates="earnings_history"
    )

    __table_args__ = (
        # One daily payout per profile per day. Rows with a NULL earnings_date never collide.
        UniqueConstraint("user_id", "type", "earnings_date", name="uq_earnings_history_user_type_day"),
        Index("idx_earnings_history_type_time", "type", "created_at"),
        Index("idx_earnings_history_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EarningsHistory(user={self.user_id}, type={self.type}, amount={self.amount})>"
