"""
Types for daily earnings accrual.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ProfileSnapshot:
    """The profile fields the accrual job reads."""
    id: str
    balance: int
    daily_earnings: int
    selected_plan: Optional[str]
    plan_start_date: Optional[datetime]
    username: Optional[str] = None


@dataclass(frozen=True)
class ProfileUpdate:
    """A staged profile mutation: either a payout increment or an expiry."""
    profile_id: str
    amount: int = 0
    expire: bool = False


@dataclass(frozen=True)
class LedgerEntry:
    """A staged daily_earnings ledger row."""
    user_id: str
    amount: int
    description: str
    earnings_date: date
    created_at: datetime


@dataclass
class AccrualBatch:
    """Everything a run decided before touching the stores."""
    payouts: List[ProfileUpdate] = field(default_factory=list)
    expirations: List[ProfileUpdate] = field(default_factory=list)
    entries: List[LedgerEntry] = field(default_factory=list)
    skipped: int = 0
    already_paid: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.payouts and not self.expirations


@dataclass
class AccrualResult:
    """Summary of a run."""
    earnings_date: date
    active_profiles: int = 0
    processed: int = 0
    expired: int = 0
    skipped: int = 0
    already_paid: int = 0
    total_updates: int = 0
    history_entries: int = 0

    @property
    def message(self) -> str:
        if self.active_profiles == 0:
            return "No active users to process."
        if self.total_updates == 0:
            return "No users to update."
        return (
            "Daily earnings process completed successfully! "
            f"Processed: {self.processed}, Expired: {self.expired}"
        )


@dataclass(frozen=True)
class DailySummary:
    """Aggregated daily_earnings ledger rows for one UTC day."""
    earnings_date: date
    users_processed: int
    total_distributed: int
    first_processed_at: Optional[datetime]
    last_processed_at: Optional[datetime]


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window(as_of: datetime) -> Tuple[date, datetime, datetime]:
    """Return the UTC calendar day of as_of and its [start, end) bounds."""
    earnings_date = as_utc(as_of).date()
    start = datetime.combine(earnings_date, time.min, tzinfo=timezone.utc)
    return earnings_date, start, start + timedelta(days=1)
