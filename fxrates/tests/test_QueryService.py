"""Unit tests for QueryService."""

import asyncio
from decimal import Decimal
from unittest.mock import patch

import pytest

from fxrates.src.Quote import CurrencyGroup, Quote
from fxrates.src.QueryService import QueryService, UnsupportedCurrencyError, cache_key
from fxrates.src.ResultCache import ResultCache

ARS = CurrencyGroup.ARS
BRL = CurrencyGroup.BRL


def quote(buy: str, sell: str, source: str) -> Quote:
    return Quote(Decimal(buy), Decimal(sell), source)


ARS_QUOTES = [quote("100", "102", "a"), quote("102", "104", "b")]
BRL_QUOTES = [quote("0.18", "0.18", "w"), quote("0.19", "0.19", "n")]


class FakeAggregator:
    """Aggregator double returning canned quotes and counting calls."""

    def __init__(self, quotes: dict | None = None):
        self.quotes = quotes if quotes is not None else {ARS: list(ARS_QUOTES), BRL: list(BRL_QUOTES)}
        self.calls = 0

    async def fetch_all_quotes(self):
        self.calls += 1
        return self.quotes


def make_service(quotes: dict | None = None, **kwargs) -> tuple[QueryService, FakeAggregator]:
    aggregator = FakeAggregator(quotes)
    return QueryService(aggregator, ResultCache(), **kwargs), aggregator


class TestNormalizeCurrency:
    """Test currency normalization."""

    @pytest.mark.parametrize("value", ["brl", "BRL", "Brl"])
    def test_brl(self, value: str) -> None:
        service, _ = make_service()
        assert service.normalize_currency(value) is BRL

    @pytest.mark.parametrize("value", ["ars", "ARS", "xyz", "usd", None, ""])
    def test_everything_else_is_ars(self, value) -> None:
        """Unknown codes fall back to ARS."""
        service, _ = make_service()
        assert service.normalize_currency(value) is ARS

    def test_strict_rejects_unknown(self) -> None:
        service, _ = make_service(strict_currency=True)

        with pytest.raises(UnsupportedCurrencyError, match="Unsupported currency 'XYZ'") as exc_info:
            service.normalize_currency("xyz")
        assert exc_info.value.currency == "XYZ"

    def test_strict_still_defaults_missing(self) -> None:
        service, _ = make_service(strict_currency=True)

        assert service.normalize_currency(None) is ARS
        assert service.normalize_currency("brl") is BRL


class TestGetQuotes:
    """Test the quotes view."""

    def test_fresh_then_cached(self) -> None:
        service, aggregator = make_service()

        first = asyncio.run(service.get_quotes(ARS))
        second = asyncio.run(service.get_quotes(ARS))

        assert first.status_code == 200
        assert first.body["currency"] == "ARS"
        assert first.body["count"] == 2
        assert first.body["fromCache"] is False
        assert first.body["quotes"][0] == {"buy_price": 100.0, "sell_price": 102.0, "source": "a"}
        assert second.body["fromCache"] is True
        assert second.body["quotes"] == first.body["quotes"]
        assert second.body["count"] == 2
        assert aggregator.calls == 1

    def test_selects_requested_group(self) -> None:
        service, _ = make_service()

        result = asyncio.run(service.get_quotes(BRL))

        assert result.body["currency"] == "BRL"
        assert [q["source"] for q in result.body["quotes"]] == ["w", "n"]

    def test_group_unavailable(self) -> None:
        """No quotes means 503 and nothing cached."""
        service, _ = make_service({ARS: [], BRL: list(BRL_QUOTES)})

        result = asyncio.run(service.get_quotes(ARS))

        assert result.status_code == 503
        assert result.body == {"error": "Unable to fetch quotes from sources", "currency": "ARS"}
        assert service.cache.get(cache_key("quotes", ARS)) is None
        assert len(service.cache) == 0

    def test_unavailable_retries_upstream(self) -> None:
        service, aggregator = make_service({ARS: [], BRL: []})

        asyncio.run(service.get_quotes(ARS))
        asyncio.run(service.get_quotes(ARS))

        assert aggregator.calls == 2


class TestGetAverage:
    """Test the average view."""

    def test_idempotent_within_ttl(self) -> None:
        service, aggregator = make_service()

        first = asyncio.run(service.get_average(ARS))
        second = asyncio.run(service.get_average(ARS))

        assert first.body == {
            "average_buy_price": 101.0,
            "average_sell_price": 103.0,
            "currency": "ARS",
            "fromCache": False,
        }
        assert second.body["average_buy_price"] == first.body["average_buy_price"]
        assert second.body["average_sell_price"] == first.body["average_sell_price"]
        assert second.body["fromCache"] is True
        assert aggregator.calls == 1

    def test_group_unavailable(self) -> None:
        service, _ = make_service({ARS: [], BRL: []})

        result = asyncio.run(service.get_average(BRL))

        assert result.status_code == 503
        assert result.body["currency"] == "BRL"
        assert len(service.cache) == 0

    @patch("fxrates.src.ResultCache.time.time")
    def test_refetched_after_ttl(self, mock_time) -> None:
        service, aggregator = make_service()
        mock_time.return_value = 1000.0
        asyncio.run(service.get_average(ARS))

        mock_time.return_value = 1061.0
        result = asyncio.run(service.get_average(ARS))

        assert result.body["fromCache"] is False
        assert aggregator.calls == 2


class TestGetSlippage:
    """Test the slippage view."""

    def test_slippage_example(self) -> None:
        service, _ = make_service()

        result = asyncio.run(service.get_slippage(ARS))

        assert result.status_code == 200
        assert result.body["currency"] == "ARS"
        assert result.body["count"] == 2
        assert result.body["fromCache"] is False
        a, b = result.body["slippage"]
        assert a["source"] == "a"
        assert a["buy_price_slippage"] == pytest.approx(-0.0099)
        assert b["source"] == "b"
        assert b["buy_price_slippage"] == pytest.approx(0.0099)

    def test_cached(self) -> None:
        service, aggregator = make_service()

        asyncio.run(service.get_slippage(BRL))
        result = asyncio.run(service.get_slippage(BRL))

        assert result.body["fromCache"] is True
        assert result.body["count"] == 2
        assert aggregator.calls == 1

    def test_zero_average_unavailable(self) -> None:
        """Prices too small to average to a positive number are not divided by."""
        service, _ = make_service({ARS: [quote("0.001", "0.001", "tiny")], BRL: []})

        result = asyncio.run(service.get_slippage(ARS))

        assert result.status_code == 503
        assert result.body["error"] == "Unable to calculate slippage"
        assert len(service.cache) == 0


class TestCacheKeys:
    """Each view is cached independently."""

    def test_views_do_not_share_entries(self) -> None:
        service, aggregator = make_service()

        asyncio.run(service.get_average(ARS))
        result = asyncio.run(service.get_quotes(ARS))

        assert result.body["fromCache"] is False
        assert aggregator.calls == 2
        assert cache_key("average", ARS) in service.cache
        assert cache_key("quotes", ARS) in service.cache

    def test_currencies_do_not_share_entries(self) -> None:
        service, aggregator = make_service()

        asyncio.run(service.get_quotes(ARS))
        result = asyncio.run(service.get_quotes(BRL))

        assert result.body["fromCache"] is False
        assert aggregator.calls == 2


class TestWarm:
    """Test cache warming from a background refresh."""

    def test_warms_all_views(self) -> None:
        service, aggregator = make_service()

        service.warm({ARS: list(ARS_QUOTES), BRL: list(BRL_QUOTES)})

        for kind in ("quotes", "average", "slippage"):
            for group in (ARS, BRL):
                assert cache_key(kind, group) in service.cache

        result = asyncio.run(service.get_average(ARS))
        assert result.body["fromCache"] is True
        assert result.body["average_buy_price"] == 101.0
        assert aggregator.calls == 0

    def test_skips_empty_group(self) -> None:
        """An outage does not overwrite a still fresh result."""
        service, _ = make_service()
        service.cache.set(cache_key("quotes", BRL), [{"source": "old"}])

        service.warm({ARS: list(ARS_QUOTES), BRL: []})

        assert service.cache.get(cache_key("quotes", BRL)) == [{"source": "old"}]
        assert cache_key("average", BRL) not in service.cache
