"""Quote value objects shared by fetchers, statistics and the HTTP layer.

.. code-block:: python

    >>> quote = Quote(Decimal("100"), Decimal("102"), "a")
    >>> quote.to_dict()
    {'buy_price': 100.0, 'sell_price': 102.0, 'source': 'a'}
    >>> CurrencyGroup.from_string("brl")
    <CurrencyGroup.BRL: 'BRL'>
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class CurrencyGroup(str, Enum):
    """Currency whose quotes are scraped and aggregated together."""

    ARS = "ARS"
    BRL = "BRL"

    @classmethod
    def from_string(cls, value: str | None) -> CurrencyGroup | None:
        """Look up a group by case-insensitive code.

        :param value: Currency code such as "ars" or "BRL".
        :returns: Matching group, or None if the code is unknown.
        """
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


def _is_positive(value: Decimal) -> bool:
    return value.is_finite() and value > 0


@dataclass(frozen=True)
class Quote:
    """Buy/sell price pair reported by a single source.

    :ivar buy_price: Price at which the source buys the currency.
    :ivar sell_price: Price at which the source sells the currency.
    :ivar source: Identifier of the reporting site (its URL).
    """

    buy_price: Decimal
    sell_price: Decimal
    source: str

    def __post_init__(self) -> None:
        if not _is_positive(self.buy_price) or not _is_positive(self.sell_price):
            raise ValueError(
                f"Quote prices must be positive and finite, got "
                f"buy={self.buy_price} sell={self.sell_price}"
            )

    def to_dict(self) -> dict:
        return {
            "buy_price": float(self.buy_price),
            "sell_price": float(self.sell_price),
            "source": self.source,
        }


@dataclass(frozen=True)
class Average:
    """Mean buy/sell price across the quotes of one currency group.

    :ivar average_buy_price: Mean buy price, rounded to 2 decimals.
    :ivar average_sell_price: Mean sell price, rounded to 2 decimals.
    :ivar currency: Group the average belongs to, filled in by the caller.
    """

    average_buy_price: Decimal
    average_sell_price: Decimal
    currency: CurrencyGroup | None = None

    def to_dict(self) -> dict:
        return {
            "average_buy_price": float(self.average_buy_price),
            "average_sell_price": float(self.average_sell_price),
            "currency": self.currency.value if self.currency else "",
        }


@dataclass(frozen=True)
class Slippage:
    """Relative deviation of one source's quote from the group average.

    :ivar buy_price_slippage: (buy - average) / average, rounded to 4 decimals.
    :ivar sell_price_slippage: (sell - average) / average, rounded to 4 decimals.
    :ivar source: Identifier of the source the deviation belongs to.
    """

    buy_price_slippage: Decimal
    sell_price_slippage: Decimal
    source: str

    def to_dict(self) -> dict:
        return {
            "buy_price_slippage": float(self.buy_price_slippage),
            "sell_price_slippage": float(self.sell_price_slippage),
            "source": self.source,
        }
