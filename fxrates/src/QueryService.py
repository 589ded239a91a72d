"""QueryService: cache-first answers for the quotes, average and slippage views.

Flow per request:
    1. Normalize the requested currency (unknown codes fall back to ARS unless
       strict validation is enabled)
    2. Return the cached result for "{kind}_{currency}" if fresh
    3. Otherwise fetch both currency groups and pick the requested one
    4. No quotes means the group is unavailable: answer 503 and cache nothing
    5. Compute the requested view, cache it and return it

Each view is cached under its own key, so a cached average does not answer a
quotes request for the same currency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .Quote import Average, CurrencyGroup, Quote
from .QuoteStatistics import calculate_average, calculate_slippage

if TYPE_CHECKING:
    from .QuoteAggregator import QuoteAggregator
    from .ResultCache import ResultCache

logger = logging.getLogger(__name__)

QUOTES = "quotes"
AVERAGE = "average"
SLIPPAGE = "slippage"

UNAVAILABLE_MESSAGE = "Unable to fetch quotes from sources"


class QueryError(Exception):
    """Base exception for rejected queries."""

    pass


class UnsupportedCurrencyError(QueryError):
    """Raised in strict mode when the requested currency is unknown.

    :ivar currency: The rejected currency code.
    """

    def __init__(self, currency: str):
        self.currency = currency
        supported = ", ".join(g.value for g in CurrencyGroup)
        super().__init__(f"Unsupported currency '{currency}'. Supported: {supported}")


@dataclass
class QueryResult:
    """Outcome of a query, ready to be sent as a JSON response.

    :ivar status_code: HTTP status code.
    :ivar body: JSON-serializable response body.
    """

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status_code == 200


def cache_key(kind: str, currency: CurrencyGroup) -> str:
    return f"{kind}_{currency.value}"


class QueryService:
    """Answers quote queries from the cache or a fresh aggregation.

    :ivar aggregator: Aggregator used on cache misses.
    :ivar cache: Result cache owned by this service.
    :ivar strict_currency: Reject unknown currency codes instead of
        defaulting to ARS.
    """

    def __init__(
        self,
        aggregator: QuoteAggregator,
        cache: ResultCache,
        strict_currency: bool = False,
    ) -> None:
        self.aggregator = aggregator
        self.cache = cache
        self.strict_currency = strict_currency

    def normalize_currency(self, value: str | None) -> CurrencyGroup:
        """Map a requested currency code to a currency group.

        A missing value always means ARS. Otherwise "BRL" (any case) selects
        BRL and every other code selects ARS, unless strict_currency is set.

        :param value: Raw currency query parameter.
        :returns: Currency group to answer for.
        :raises UnsupportedCurrencyError: In strict mode, for an unknown code.
        """
        if value is None or not value.strip():
            return CurrencyGroup.ARS

        group = CurrencyGroup.from_string(value)
        if group is None:
            if self.strict_currency:
                raise UnsupportedCurrencyError(value.strip().upper())
            logger.debug(f"Unknown currency {value!r}, defaulting to ARS")
            return CurrencyGroup.ARS
        return group

    async def _fresh_quotes(self, currency: CurrencyGroup) -> list[Quote]:
        all_quotes = await self.aggregator.fetch_all_quotes()
        return all_quotes.get(currency, [])

    @staticmethod
    def _unavailable(currency: CurrencyGroup, message: str = UNAVAILABLE_MESSAGE) -> QueryResult:
        return QueryResult(503, {"error": message, "currency": currency.value})

    @staticmethod
    def _quotes_body(currency: CurrencyGroup, quotes: list[dict], from_cache: bool) -> dict:
        return {
            "currency": currency.value,
            "quotes": quotes,
            "count": len(quotes),
            "fromCache": from_cache,
        }

    @staticmethod
    def _slippage_body(currency: CurrencyGroup, slippage: list[dict], from_cache: bool) -> dict:
        return {
            "currency": currency.value,
            "slippage": slippage,
            "count": len(slippage),
            "fromCache": from_cache,
        }

    @staticmethod
    def _average_for(quotes: list[Quote], currency: CurrencyGroup) -> Average | None:
        average = calculate_average(quotes)
        if average is None:
            return None
        return Average(average.average_buy_price, average.average_sell_price, currency)

    async def get_quotes(self, currency: CurrencyGroup) -> QueryResult:
        """Quotes reported by every reachable source of a currency."""
        key = cache_key(QUOTES, currency)
        cached = self.cache.get(key)
        if cached is not None:
            return QueryResult(200, self._quotes_body(currency, cached, True))

        quotes = await self._fresh_quotes(currency)
        if not quotes:
            return self._unavailable(currency)

        data = [q.to_dict() for q in quotes]
        self.cache.set(key, data)
        return QueryResult(200, self._quotes_body(currency, data, False))

    async def get_average(self, currency: CurrencyGroup) -> QueryResult:
        """Average buy/sell price across the sources of a currency."""
        key = cache_key(AVERAGE, currency)
        cached = self.cache.get(key)
        if cached is not None:
            return QueryResult(200, {**cached, "fromCache": True})

        quotes = await self._fresh_quotes(currency)
        if not quotes:
            return self._unavailable(currency)

        average = self._average_for(quotes, currency)
        if average is None:
            return self._unavailable(currency, "Unable to calculate average")

        data = average.to_dict()
        self.cache.set(key, data)
        return QueryResult(200, {**data, "fromCache": False})

    async def get_slippage(self, currency: CurrencyGroup) -> QueryResult:
        """Per-source deviation from the average of a currency."""
        key = cache_key(SLIPPAGE, currency)
        cached = self.cache.get(key)
        if cached is not None:
            return QueryResult(200, self._slippage_body(currency, cached, True))

        quotes = await self._fresh_quotes(currency)
        if not quotes:
            return self._unavailable(currency)

        average = self._average_for(quotes, currency)
        if average is None:
            return self._unavailable(currency, "Unable to calculate average")

        try:
            slippage = calculate_slippage(quotes, average)
        except ValueError as e:
            logger.warning(f"Slippage for {currency.value} not computable: {e}")
            return self._unavailable(currency, "Unable to calculate slippage")

        data = [s.to_dict() for s in slippage]
        self.cache.set(key, data)
        return QueryResult(200, self._slippage_body(currency, data, False))

    def warm(self, all_quotes: dict[CurrencyGroup, list[Quote]]) -> None:
        """Store every view computed from an already fetched set of quotes.

        Groups without quotes are skipped so that an outage never overwrites
        a still fresh result.

        :param all_quotes: Quotes per currency group.
        """
        for currency, quotes in all_quotes.items():
            if not quotes:
                continue

            self.cache.set(cache_key(QUOTES, currency), [q.to_dict() for q in quotes])

            average = self._average_for(quotes, currency)
            if average is None:
                continue
            self.cache.set(cache_key(AVERAGE, currency), average.to_dict())

            try:
                slippage = calculate_slippage(quotes, average)
            except ValueError as e:
                logger.warning(f"Skipping {currency.value} slippage refresh: {e}")
                continue
            self.cache.set(cache_key(SLIPPAGE, currency), [s.to_dict() for s in slippage])

            logger.debug(f"Warmed cache for {currency.value} ({len(quotes)} quotes)")
