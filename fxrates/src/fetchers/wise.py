"""Wise fetcher.

Page: https://wise.com/es/currency-converter/brl-to-usd-rate
Currency: BRL
Markup: span[data-test-id="mid-market-rate"], e.g. "0,1823 USD".
"""

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import RateFetcher, register_fetcher


@register_fetcher
class WiseFetcher(RateFetcher):
    """Fetcher for the Wise BRL/USD converter.

    Wise only publishes the mid-market rate.
    """

    name = "wise"
    url = "https://wise.com/es/currency-converter/brl-to-usd-rate"
    currency = CurrencyGroup.BRL

    def extract_rate(self, soup: BeautifulSoup) -> str | None:
        rate = soup.select_one('span[data-test-id="mid-market-rate"]')
        if rate is None:
            return None
        parts = rate.get_text(strip=True).split()
        return parts[0] if parts else None
