"""
Standalone entry point for the scheduler service.
Runs the daily earnings scheduler without the HTTP API.
"""

import asyncio
import signal

import structlog

from invest_platform.core.database import init_database, close_database
from invest_platform.core.logging import setup_logging
from .earnings_scheduler import DailyEarningsScheduler


logger = structlog.get_logger(__name__)


async def main():
    """Run the scheduler until SIGINT/SIGTERM."""
    setup_logging()
    await init_database()

    scheduler = DailyEarningsScheduler(enabled=True)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_event.set)

    try:
        await scheduler.start()
        logger.info("Scheduler service started")
        await stop_event.wait()
        logger.info("Shutdown signal received")
    finally:
        await scheduler.stop()
        await close_database()
        logger.info("Scheduler service stopped")


if __name__ == "__main__":
    asyncio.run(main())
