"""Nubank fetcher.

Page: https://nubank.com.br/taxas-conversao/
Currency: BRL
Markup: first span mentioning USD, e.g. "USD 5,43".
"""

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import RateFetcher, register_fetcher


@register_fetcher
class NubankFetcher(RateFetcher):
    """Fetcher for the Nubank conversion rates page."""

    name = "nubank"
    url = "https://nubank.com.br/taxas-conversao/"
    currency = CurrencyGroup.BRL

    def extract_rate(self, soup: BeautifulSoup) -> str | None:
        for span in soup.find_all("span"):
            text = span.get_text(strip=True)
            if "USD" in text:
                parts = text.split()
                return parts[1] if len(parts) > 1 else None
        return None
