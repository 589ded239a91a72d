"""Nomad fetcher.

Page: https://www.nomadglobal.com
Currency: BRL
Markup: second span inside the div that holds the "BRL" label.
"""

import re

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import RateFetcher, register_fetcher


@register_fetcher
class NomadGlobalFetcher(RateFetcher):
    """Fetcher for the Nomad home page rate widget."""

    name = "nomadglobal"
    url = "https://www.nomadglobal.com"
    currency = CurrencyGroup.BRL

    def extract_rate(self, soup: BeautifulSoup) -> str | None:
        label = soup.find("span", string=re.compile("BRL"))
        if label is None:
            return None
        container = label.find_parent("div")
        if container is None:
            return None
        spans = container.find_all("span")
        return spans[1].get_text(strip=True) if len(spans) > 1 else None
