"""QuoteAggregator: collects quotes from every source of a currency group.

Architecture:
    - Within a group, sources are fetched one after another, which bounds the
      load put on the upstream sites
    - The ARS and BRL groups are fetched concurrently and joined once
    - Each obtained quote is recorded to the history store (best-effort)
    - A failure in one group never discards the other group's quotes
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from .fetchers import get_group_fetchers
from .Quote import CurrencyGroup, Quote

if TYPE_CHECKING:
    from decimal import Decimal

    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


def _consume_result(task: asyncio.Future) -> None:
    # Detached after a timeout; nobody else will retrieve its outcome
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Late fetch failure: {task.exception()}")


class QuoteRecorder(Protocol):
    """Anything able to persist a scraped quote."""

    def record_quote(
        self,
        currency: CurrencyGroup,
        buy_price: Decimal,
        sell_price: Decimal,
        source: str,
    ) -> bool: ...


class QuoteAggregator:
    """Runs the fetchers of each currency group and gathers their quotes.

    :ivar fetchers: Dict mapping each currency group to its fetchers, in the
        order they are queried.
    :ivar store: Optional history store every quote is recorded to.
    :ivar fetch_timeout: Upper bound in seconds for a single fetcher call.
    """

    def __init__(
        self,
        fetchers: dict[CurrencyGroup, list[BaseFetcher]] | None = None,
        store: QuoteRecorder | None = None,
        fetch_timeout: float = 10.0,
    ) -> None:
        """Initialize the aggregator.

        :param fetchers: Fetchers per group (default: every registered fetcher).
        :param store: Optional history store.
        :param fetch_timeout: Timeout per fetcher call (default: 10.0).
        """
        if fetchers is None:
            fetchers = {
                group: get_group_fetchers(group, timeout=fetch_timeout)
                for group in CurrencyGroup
            }
        self.fetchers = fetchers
        self.store = store
        self.fetch_timeout = fetch_timeout
        self._pending: set[asyncio.Future] = set()

        for group, group_fetchers in self.fetchers.items():
            logger.info(f"{group.value} sources: {[f.name for f in group_fetchers]}")

    async def _fetch_single(self, fetcher: BaseFetcher) -> Quote | None:
        """Fetch one source with timeout.

        On timeout the aggregator stops waiting but the fetch itself is left to
        finish, bounded by the fetcher's own HTTP timeout.

        :param fetcher: Fetcher instance to use.
        :returns: Quote or None on failure.
        """
        task = asyncio.ensure_future(fetcher.fetch())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{fetcher.name}] Timeout fetching quote")
            task.add_done_callback(_consume_result)
            return None
        except Exception as e:
            logger.warning(f"[{fetcher.name}] Error fetching quote: {e}")
            return None

    async def _record(self, group: CurrencyGroup, quote: Quote) -> None:
        """Record a quote to the store, logging instead of raising on failure."""
        if self.store is None:
            return
        try:
            await asyncio.to_thread(
                self.store.record_quote,
                group,
                quote.buy_price,
                quote.sell_price,
                quote.source,
            )
        except Exception as e:
            logger.error(f"Failed to record {group.value} quote from {quote.source}: {e}")

    async def fetch_group_quotes(self, group: CurrencyGroup) -> list[Quote]:
        """Fetch quotes from every source of a group, one source at a time.

        :param group: Currency group to fetch.
        :returns: Quotes obtained, in source order. Empty if every source failed.
        """
        quotes: list[Quote] = []
        for fetcher in self.fetchers.get(group, []):
            quote = await self._fetch_single(fetcher)
            if quote is None:
                continue
            quotes.append(quote)
            await self._record(group, quote)

        if not quotes:
            logger.warning(f"No {group.value} source returned a quote")
        else:
            logger.debug(f"Fetched {len(quotes)} {group.value} quotes")
        return quotes

    async def fetch_all_quotes(self) -> dict[CurrencyGroup, list[Quote]]:
        """Fetch both currency groups concurrently.

        :returns: Dict mapping each group to its quotes. A group whose fetch
            raised maps to an empty list.
        """
        groups = list(self.fetchers.keys())
        results = await asyncio.gather(
            *(self.fetch_group_quotes(group) for group in groups),
            return_exceptions=True,
        )

        all_quotes: dict[CurrencyGroup, list[Quote]] = {}
        for group, result in zip(groups, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"{group.value} fetch failed: {result!r}")
                all_quotes[group] = []
            else:
                all_quotes[group] = result
        return all_quotes
