"""
Daily earnings run model for tracking each accrual invocation.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, Date, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class EarningsRunStatus(str, Enum):
    """Status of a daily earnings run."""
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class DailyEarningsRun(BaseModel):
    """
    One row per accrual invocation (scheduler, API trigger or CLI).

    Bookkeeping only: payouts are deduplicated by the ledger, not by this table.
    """

    __tablename__ = "daily_earnings_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    earnings_date: Mapped[date] = mapped_column(
        Date,
        comment="UTC day the run accrued for"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=EarningsRunStatus.STARTED.value,
        comment="Current status of the run"
    )

    triggered_by: Mapped[str] = mapped_column(
        String(20),
        default="scheduler",
        comment="What triggered this run (scheduler/api/cli)"
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Statistics
    processed: Mapped[int] = mapped_column(Integer, default=0, comment="Profiles paid")
    expired: Mapped[int] = mapped_column(Integer, default=0, comment="Profiles moved to inactive")
    skipped: Mapped[int] = mapped_column(Integer, default=0, comment="Profiles with unknown plans")
    already_paid: Mapped[int] = mapped_column(Integer, default=0, comment="Profiles paid earlier that day")

    error_message: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("idx_daily_earnings_runs_date_status", "earnings_date", "status"),
    )

    def __repr__(self) -> str:
        return f"<DailyEarningsRun(id={self.id}, date={self.earnings_date}, status={self.status})>"

    @property
    def is_complete(self) -> bool:
        """Check if run is completed (successfully or failed)."""
        return self.status in (EarningsRunStatus.COMPLETED.value, EarningsRunStatus.FAILED.value)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
