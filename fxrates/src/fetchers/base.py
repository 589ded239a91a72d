"""Base fetcher interface and shared HTTP client management.

Every quote source inherits from BaseFetcher and implements extract(), which
locates the buy and sell price in the parsed page. A shared httpx.AsyncClient
is used across all fetchers to avoid connection overhead.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "mysite"
        url = "https://www.example.com/dolar"
        currency = CurrencyGroup.ARS

        def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
            return (
                soup.select_one(".compra").get_text(),
                soup.select_one(".venta").get_text(),
            )
"""

import logging
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import ClassVar

import httpx
from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup, Quote

logger = logging.getLogger(__name__)

_PRICE_CHARS = re.compile(r"[^0-9.,\-]")
_DOT_GROUPED = re.compile(r"^-?[1-9]\d{0,2}(\.\d{3})+$")


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


def parse_price(text: str | None) -> Decimal | None:
    """Parse a price as printed on a quote page.

    Accepts "," or "." as decimal separator. When both appear, the last one is
    the decimal separator and the other is thousands grouping, so both
    "1.234,50" and "1,234.50" parse to 1234.50. Dots alone are read as
    thousands grouping when every group after the first has exactly three
    digits, so "$1.450" is 1450 while "5.4321" stays a decimal.

    :param text: Raw text, possibly with currency symbols and whitespace.
    :returns: Positive finite price, or None if the text holds no such number.

    .. code-block:: python

        >>> parse_price("$ 1.045,50")
        Decimal('1045.50')
        >>> parse_price("0") is None
        True
    """
    if not text:
        return None

    cleaned = _PRICE_CHARS.sub("", text)
    if not cleaned:
        return None

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif last_comma >= 0:
        cleaned = cleaned.replace(",", ".")
    elif _DOT_GROUPED.match(cleaned):
        cleaned = cleaned.replace(".", "")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not value.is_finite() or value <= 0:
        return None
    return value


class BaseFetcher(ABC):
    """Abstract base class for quote sources.

    Subclasses must define:
        - name: Class variable identifying the source (e.g., "ambito")
        - url: Page the quote is scraped from, also used as the quote source
        - currency: CurrencyGroup the source quotes
        - extract(): Locate the buy and sell price text in the parsed page

    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :cvar USER_AGENT: User-Agent header sent with every request.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    url: ClassVar[str] = ""
    currency: ClassVar[CurrencyGroup | None] = None

    DEFAULT_TIMEOUT = 10.0
    USER_AGENT = "Mozilla/5.0"

    def __init__(self, timeout: float | None = None):
        """Initialize the fetcher.

        :param timeout: Request timeout in seconds (default: 10).
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if BaseFetcher._shared_client is not None and not BaseFetcher._shared_client.is_closed:
            await BaseFetcher._shared_client.aclose()
        BaseFetcher._shared_client = None

    @abstractmethod
    def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        """Locate the buy and sell price in the page.

        :param soup: Parsed response body.
        :returns: Raw (buy, sell) price text; None where nothing was found.
        """
        pass

    async def fetch(self) -> Quote | None:
        """Fetch the current quote from this source.

        Never raises: network errors, non-2xx responses, missing markup and
        non-positive prices are logged and reported as None.

        :returns: Quote, or None if the page did not yield two positive prices.
        """
        try:
            response = await self._get(self.url)
            soup = BeautifulSoup(response.text, "html.parser")
            buy_text, sell_text = self.extract(soup)
        except FetcherError as e:
            logger.warning(f"[{self.name}] Failed to fetch {self.url}: {e}")
            return None
        except (AttributeError, IndexError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"[{self.name}] Failed to parse response: {e}")
            return None

        buy_price = parse_price(buy_text)
        sell_price = parse_price(sell_text)
        if buy_price is None or sell_price is None:
            logger.warning(
                f"[{self.name}] No usable prices found "
                f"(buy={buy_text!r}, sell={sell_text!r})"
            )
            return None

        logger.debug(f"[{self.name}] buy={buy_price} sell={sell_price}")
        return Quote(buy_price=buy_price, sell_price=sell_price, source=self.url)

    async def _get(self, url: str, *, params: dict | None = None) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers={"User-Agent": self.USER_AGENT},
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e


class RateFetcher(BaseFetcher):
    """Base for sources that publish a single mid-market rate.

    The rate is reported as both the buy and the sell price.
    """

    @abstractmethod
    def extract_rate(self, soup: BeautifulSoup) -> str | None:
        """Locate the rate text in the page.

        :param soup: Parsed response body.
        :returns: Raw rate text, or None if not found.
        """
        pass

    def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        rate = self.extract_rate(soup)
        return rate, rate


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name, url or currency defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    if not cls.url or cls.currency is None:
        raise ValueError(f"Fetcher {cls.__name__} must define 'url' and 'currency'")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(name: str, timeout: float | None = None) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "ambito", "wise").
    :param timeout: Optional request timeout in seconds.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())


def get_group_fetchers(
    currency: CurrencyGroup, timeout: float | None = None
) -> list[BaseFetcher]:
    """Instantiate every fetcher quoting the given currency.

    :param currency: Currency group to build fetchers for.
    :param timeout: Optional request timeout in seconds.
    :returns: Fetchers in registration order.
    """
    return [
        cls(timeout=timeout)
        for cls in FETCHER_REGISTRY.values()
        if cls.currency == currency
    ]
