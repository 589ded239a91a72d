"""Tests for the HTTP endpoints."""

from datetime import datetime
from decimal import Decimal

from fastapi.testclient import TestClient

from fxrates.src.fetchers import BaseFetcher
from fxrates.src.Quote import CurrencyGroup, Quote
from fxrates.src.QueryService import QueryService
from fxrates.src.QuoteApi import create_app
from fxrates.src.RefreshTimer import RefreshTimer
from fxrates.src.ResultCache import ResultCache

ARS = CurrencyGroup.ARS
BRL = CurrencyGroup.BRL


class FakeAggregator:
    """Aggregator double returning canned quotes, or raising."""

    def __init__(self, quotes: dict | None = None, error: Exception | None = None):
        self.quotes = quotes if quotes is not None else {
            ARS: [
                Quote(Decimal("100"), Decimal("102"), "a"),
                Quote(Decimal("102"), Decimal("104"), "b"),
            ],
            BRL: [Quote(Decimal("0.18"), Decimal("0.18"), "w")],
        }
        self.error = error
        self.calls = 0

    async def fetch_all_quotes(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.quotes


def make_client(aggregator: FakeAggregator | None = None, **kwargs) -> TestClient:
    service = QueryService(aggregator or FakeAggregator(), ResultCache(), **kwargs)
    return TestClient(create_app(service))


class TestInfoEndpoints:
    """Test / and /health."""

    def test_root(self) -> None:
        response = make_client().get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Currency Exchange API"
        assert set(body["endpoints"]) == {"quotes", "average", "slippage", "health"}

    def test_health(self) -> None:
        response = make_client().get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))


class TestQuotesEndpoint:
    """Test GET /quotes."""

    def test_default_currency(self) -> None:
        response = make_client().get("/quotes")

        assert response.status_code == 200
        body = response.json()
        assert body["currency"] == "ARS"
        assert body["count"] == 2
        assert body["fromCache"] is False
        assert body["quotes"][0] == {"buy_price": 100.0, "sell_price": 102.0, "source": "a"}

    def test_lowercase_brl(self) -> None:
        body = make_client().get("/quotes", params={"currency": "brl"}).json()

        assert body["currency"] == "BRL"
        assert [q["source"] for q in body["quotes"]] == ["w"]

    def test_unknown_currency_defaults_to_ars(self) -> None:
        body = make_client().get("/quotes", params={"currency": "xyz"}).json()
        assert body["currency"] == "ARS"

    def test_all_sources_down(self) -> None:
        """No ARS quotes means 503 and nothing cached."""
        aggregator = FakeAggregator({ARS: [], BRL: []})
        service = QueryService(aggregator, ResultCache())
        client = TestClient(create_app(service))

        response = client.get("/quotes", params={"currency": "ARS"})

        assert response.status_code == 503
        assert response.json() == {"error": "Unable to fetch quotes from sources", "currency": "ARS"}
        assert service.cache.get("quotes_ARS") is None

    def test_internal_error(self) -> None:
        """Unexpected errors become a generic 500 without details."""
        client = make_client(FakeAggregator(error=RuntimeError("secret connection string")))

        response = client.get("/quotes")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert "secret" not in response.text

    def test_strict_currency(self) -> None:
        client = make_client(strict_currency=True)

        response = client.get("/quotes", params={"currency": "xyz"})

        assert response.status_code == 400
        assert response.json()["currency"] == "XYZ"


class TestAverageEndpoint:
    """Test GET /average."""

    def test_second_request_cached(self) -> None:
        aggregator = FakeAggregator()
        client = make_client(aggregator)

        first = client.get("/average", params={"currency": "ARS"}).json()
        second = client.get("/average", params={"currency": "ARS"}).json()

        assert first == {
            "average_buy_price": 101.0,
            "average_sell_price": 103.0,
            "currency": "ARS",
            "fromCache": False,
        }
        assert second["average_buy_price"] == first["average_buy_price"]
        assert second["average_sell_price"] == first["average_sell_price"]
        assert second["fromCache"] is True
        assert aggregator.calls == 1

    def test_unavailable(self) -> None:
        client = make_client(FakeAggregator({ARS: [], BRL: []}))
        assert client.get("/average", params={"currency": "BRL"}).status_code == 503


class TestSlippageEndpoint:
    """Test GET /slippage."""

    def test_slippage(self) -> None:
        body = make_client().get("/slippage").json()

        assert body["currency"] == "ARS"
        assert body["count"] == 2
        assert body["fromCache"] is False
        assert [s["source"] for s in body["slippage"]] == ["a", "b"]
        assert body["slippage"][0]["buy_price_slippage"] == -0.0099
        assert body["slippage"][1]["buy_price_slippage"] == 0.0099

    def test_unavailable(self) -> None:
        client = make_client(FakeAggregator({ARS: [], BRL: []}))
        assert client.get("/slippage").status_code == 503


class TestMiddleware:
    """Test CORS, compression and response headers."""

    def test_cross_origin_get(self) -> None:
        """Any origin may read the API."""
        response = make_client().get("/health", headers={"Origin": "https://example.org"})

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_cors_preflight(self) -> None:
        response = make_client().options(
            "/quotes",
            headers={"Origin": "https://example.org", "Access-Control-Request-Method": "GET"},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_security_headers(self) -> None:
        response = make_client().get("/")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "SAMEORIGIN"

    def test_security_headers_on_internal_error(self) -> None:
        response = make_client(FakeAggregator(error=RuntimeError("boom"))).get("/quotes")

        assert response.status_code == 500
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_large_response_compressed(self) -> None:
        quotes = [Quote(Decimal("1045.50"), Decimal("1065.50"), f"source-{i}") for i in range(40)]
        client = make_client(FakeAggregator({ARS: quotes, BRL: []}))

        response = client.get("/quotes", headers={"Accept-Encoding": "gzip"})

        assert response.status_code == 200
        assert response.headers["content-encoding"] == "gzip"
        assert len(response.json()["quotes"]) == 40


class TestLifespan:
    """Test startup and shutdown hooks."""

    def test_refresh_timer_runs_with_app(self) -> None:
        aggregator = FakeAggregator()
        service = QueryService(aggregator, ResultCache())
        timer = RefreshTimer(aggregator, period=60, on_refresh=service.warm)

        with TestClient(create_app(service, refresh_timer=timer)) as client:
            assert timer.running
            assert client.get("/health").status_code == 200

        assert not timer.running
        assert BaseFetcher._shared_client is None
