"""RefreshTimer: fixed-interval background refresh of all quotes.

Each cycle fetches both currency groups and hands the result to a callback
(normally QueryService.warm) so request handlers find a warm cache. The timer
shares the cache with in-flight requests without further coordination.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .Quote import CurrencyGroup, Quote
    from .QuoteAggregator import QuoteAggregator

logger = logging.getLogger(__name__)


class RefreshTimer:
    """Periodically runs the aggregator in a background task.

    :ivar aggregator: Aggregator invoked every cycle.
    :ivar period: Seconds to sleep between cycles.
    :ivar on_refresh: Optional callback receiving each cycle's quotes.
    """

    DEFAULT_PERIOD = 30.0

    def __init__(
        self,
        aggregator: QuoteAggregator,
        period: float = DEFAULT_PERIOD,
        on_refresh: Callable[[dict[CurrencyGroup, list[Quote]]], None] | None = None,
    ) -> None:
        """Initialize the timer.

        :param aggregator: Aggregator to run.
        :param period: Seconds between cycles (minimum: 1, default: 30).
        :param on_refresh: Callback invoked with the quotes of each cycle.
        """
        self.aggregator = aggregator
        self.period = max(1.0, period)
        self.on_refresh = on_refresh
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        """Run one refresh cycle, logging instead of raising on failure."""
        logger.info("Scheduled fetch: refreshing quotes...")
        try:
            all_quotes = await self.aggregator.fetch_all_quotes()
            if self.on_refresh is not None:
                self.on_refresh(all_quotes)
        except Exception:
            logger.exception("Scheduled fetch failed")
            return

        counts = ", ".join(f"{g.value}={len(q)}" for g, q in all_quotes.items())
        logger.info(f"Scheduled fetch complete: {counts}")

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.period)

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="quote-refresh")
        logger.info(f"Refresh timer started (every {self.period:g}s)")

    def stop(self) -> None:
        """Cancel the background loop.

        In-flight fetches are not awaited; the process exits without waiting
        for them.
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Refresh timer stopped")
