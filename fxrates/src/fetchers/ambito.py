"""Ambito fetcher.

Page: https://www.ambito.com/contenidos/dolar.html
Currency: ARS
Markup: price follows the span labelled "Compra" / "Venta".
"""

import re

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import BaseFetcher, register_fetcher


@register_fetcher
class AmbitoFetcher(BaseFetcher):
    """Fetcher for the Ambito dollar page."""

    name = "ambito"
    url = "https://www.ambito.com/contenidos/dolar.html"
    currency = CurrencyGroup.ARS

    @staticmethod
    def _value_after(soup: BeautifulSoup, label: str) -> str | None:
        span = soup.find("span", string=re.compile(label))
        if span is None:
            return None
        value = span.find_next_sibling()
        return value.get_text(strip=True) if value is not None else None

    def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        return self._value_after(soup, "Compra"), self._value_after(soup, "Venta")
