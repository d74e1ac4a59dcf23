"""
Card Trends — Daily Snapshot Scheduler

Runs MarketTrendsService.run_daily_update() once per UTC calendar day.
The update itself is idempotent, so a restart that re-runs the same day
or a second scheduler instance racing this one is harmless.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import date, datetime, timezone
from typing import Any, Callable

import structlog

from cardtrends.config import settings
from cardtrends.services.market_trends import MarketTrendsService

logger = structlog.get_logger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class DailyTrendScheduler:
    """
    Async loop that triggers the daily snapshot when the UTC date changes.

    Args:
        service: Service owning the daily update and the cache.
        check_interval_seconds: How often to look at the clock.
        today: Date source. Injectable for tests.
    """

    def __init__(
        self,
        service: MarketTrendsService,
        check_interval_seconds: float | None = None,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self.service = service
        self._interval = (
            settings.SCHEDULER_CHECK_INTERVAL_SECONDS
            if check_interval_seconds is None
            else check_interval_seconds
        )
        self._today = today
        self._last_run_date: date | None = None
        self._shutdown_event = asyncio.Event()

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    def _should_run(self) -> bool:
        return self._last_run_date != self._today()

    async def run_once(self) -> bool:
        """
        Run the daily update if today's has not run yet.

        Returns True if an update was attempted. A failed attempt is logged
        and retried on the next check.
        """
        if not self._should_run():
            return False

        today = self._today()
        try:
            result = await self.service.run_daily_update(today)
        except Exception as e:
            logger.error(
                "scheduler_daily_update_failed",
                date=today.isoformat(),
                error=str(e),
                error_type=type(e).__name__,
            )
            return True

        self._last_run_date = today
        logger.info(
            "scheduler_daily_update_done",
            date=today.isoformat(),
            created=result.created,
        )
        return True

    async def run(self) -> None:
        """Main loop. Runs until shutdown() is called."""
        logger.info("scheduler_started", check_interval_seconds=self._interval)

        try:
            while not self._shutdown_event.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self._interval,
                    )
                except asyncio.TimeoutError:
                    # No shutdown signal, check the clock again
                    continue
        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(service: MarketTrendsService) -> None:
    """
    Run the daily scheduler with SIGTERM/SIGINT triggering graceful shutdown.
    """
    scheduler = DailyTrendScheduler(service)

    def handle_signal(_signum: int, _frame: Any) -> None:
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    await scheduler.run()
