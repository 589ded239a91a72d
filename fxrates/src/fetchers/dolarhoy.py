"""DolarHoy fetcher.

Page: https://www.dolarhoy.com
Currency: ARS
Markup: first elements carrying data-compra / data-venta attributes.
"""

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import BaseFetcher, register_fetcher


@register_fetcher
class DolarHoyFetcher(BaseFetcher):
    """Fetcher for DolarHoy."""

    name = "dolarhoy"
    url = "https://www.dolarhoy.com"
    currency = CurrencyGroup.ARS

    def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        buy = soup.select_one("[data-compra]")
        sell = soup.select_one("[data-venta]")
        return (
            buy.get_text(strip=True) if buy is not None else None,
            sell.get_text(strip=True) if sell is not None else None,
        )
