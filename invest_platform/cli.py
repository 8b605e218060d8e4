"""
Command line interface for operators: run accrual, inspect summaries, manage the database.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from alembic import command
from alembic.config import Config

from invest_platform.core.config import settings
from invest_platform.core.database import (
    DatabaseManager,
    close_database,
    get_session_maker,
    init_database,
)
from invest_platform.core.exceptions import InvestPlatformException
from invest_platform.core.logging import setup_logging
from invest_platform.services.accrual import (
    AccrualJob,
    AccrualRunTracker,
    EarningsLedgerRepository,
    run_tracked_accrual,
)


console = Console()
app = typer.Typer(help="Invest platform management commands")


def _parse_as_of(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter("expected an ISO 8601 date or datetime, e.g. 2024-05-01T00:30:00+00:00")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _run(coro):
    """Run a coroutine with logging and the database set up around it."""
    async def _wrapped():
        setup_logging()
        await init_database()
        try:
            return await coro()
        finally:
            await close_database()

    return asyncio.run(_wrapped())


@app.command("run-daily-earnings")
def run_daily_earnings(
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Accrue for the UTC day of this timestamp (default: now)"
    ),
):
    """Accrue plan earnings for every active profile. Safe to re-run the same day."""
    as_of_value = _parse_as_of(as_of)

    async def _accrue():
        session_maker = get_session_maker()
        job = AccrualJob(session_maker, timeout_seconds=settings.store_timeout_seconds)
        return await run_tracked_accrual(job, AccrualRunTracker(session_maker), "cli", as_of_value)

    try:
        result = _run(_accrue)
    except InvestPlatformException as e:
        console.print(f"[red]❌ {e.message}[/red]")
        if e.details:
            console.print(e.details)
        raise typer.Exit(code=1)

    table = Table(title=f"Daily earnings for {result.earnings_date.isoformat()}")
    table.add_column("Processed", justify="right")
    table.add_column("Expired", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Already paid", justify="right")
    table.add_column("History entries", justify="right")
    table.add_row(
        str(result.processed),
        str(result.expired),
        str(result.skipped),
        str(result.already_paid),
        str(result.history_entries),
    )
    console.print(table)
    console.print(f"✅ {result.message}")


@app.command()
def summary(days: int = typer.Option(7, min=1, max=90, help="Number of days to show")):
    """Show profiles paid and amount distributed per day."""
    async def _summaries():
        today = datetime.now(timezone.utc).date()
        async with get_session_maker()() as session:
            return await EarningsLedgerRepository().daily_summaries(session, today, days)

    summaries = _run(_summaries)

    table = Table(title="Daily earnings summary")
    table.add_column("Date")
    table.add_column("Users", justify="right")
    table.add_column("Distributed", justify="right")
    table.add_column("First")
    table.add_column("Last")

    for item in summaries:
        table.add_row(
            item.earnings_date.isoformat(),
            str(item.users_processed),
            str(item.total_distributed),
            item.first_processed_at.isoformat() if item.first_processed_at else "-",
            item.last_processed_at.isoformat() if item.last_processed_at else "-",
        )

    console.print(table)


@app.command("init-db")
def init_db():
    """Create all tables directly (development only; use `upgrade` elsewhere)."""
    _run(DatabaseManager.create_tables)
    console.print("✅ Database initialized successfully!")


@app.command("drop-db")
def drop_db(yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt")):
    """Drop all tables."""
    if not yes:
        typer.confirm("Drop every table, including the earnings ledger?", abort=True)
    _run(DatabaseManager.drop_tables)
    console.print("🗑️ Database tables dropped")


@app.command()
def upgrade(revision: str = "head"):
    """Apply migrations."""
    command.upgrade(Config("alembic.ini"), revision)
    console.print(f"✅ Database upgraded to: {revision}")


@app.command()
def current():
    """Show current database revision."""
    command.current(Config("alembic.ini"))


if __name__ == "__main__":
    app()
