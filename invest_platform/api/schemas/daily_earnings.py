"""
Schemas for the daily earnings trigger, status and monitoring endpoints.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from invest_platform.services.accrual.types import AccrualResult, DailySummary
from .common import utc_now


class DailyEarningsResponse(BaseModel):
    """Result of a triggered accrual run."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    processed: int = Field(ge=0)
    expired: int = Field(ge=0)
    total_updates: int = Field(ge=0, alias="totalUpdates")
    history_entries: int = Field(ge=0, alias="historyEntries")

    @classmethod
    def from_result(cls, result: AccrualResult) -> "DailyEarningsResponse":
        return cls(
            message=result.message,
            processed=result.processed,
            expired=result.expired,
            total_updates=result.total_updates,
            history_entries=result.history_entries,
        )


class DailyEarningsStatus(BaseModel):
    """Liveness message for the trigger endpoint."""
    message: str = (
        "Daily earnings endpoint is active. "
        "Use POST with proper authorization to trigger earnings."
    )
    timestamp: datetime = Field(default_factory=utc_now)


class DailySummaryItem(BaseModel):
    """Aggregated payouts for one day."""
    earnings_date: date
    users_processed: int
    total_distributed: int
    first_processed_at: Optional[datetime] = None
    last_processed_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: DailySummary) -> "DailySummaryItem":
        return cls(
            earnings_date=summary.earnings_date,
            users_processed=summary.users_processed,
            total_distributed=summary.total_distributed,
            first_processed_at=summary.first_processed_at,
            last_processed_at=summary.last_processed_at,
        )


class DailySummaryResponse(BaseModel):
    """Recent daily summaries, newest first."""
    has_run_today: bool
    summaries: List[DailySummaryItem]


class EarningsRunItem(BaseModel):
    """A recorded accrual run."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    earnings_date: date
    status: str
    triggered_by: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    processed: int
    expired: int
    skipped: int
    already_paid: int
    error_message: Optional[str] = None


class SchedulerStatusResponse(BaseModel):
    """State of the in-process daily earnings scheduler."""
    status: str
    enabled: bool
    utc_hour: int
    next_run: Optional[datetime] = None
    stats: Dict[str, Any]
