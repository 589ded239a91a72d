"""El Cronista fetcher.

Page: https://www.cronista.com/MercadosOnline/moneda.html?id=ARSB
Currency: ARS
Markup: first table cell is the buy price, second the sell price.
"""

from bs4 import BeautifulSoup

from ..Quote import CurrencyGroup
from .base import BaseFetcher, register_fetcher


@register_fetcher
class CronistaFetcher(BaseFetcher):
    """Fetcher for the El Cronista blue dollar page."""

    name = "cronista"
    url = "https://www.cronista.com/MercadosOnline/moneda.html?id=ARSB"
    currency = CurrencyGroup.ARS

    def extract(self, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        cells = soup.find_all("td", limit=2)
        if len(cells) < 2:
            return None, None
        return cells[0].get_text(strip=True), cells[1].get_text(strip=True)
