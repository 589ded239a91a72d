"""QuoteStatistics: cross-source average and per-source slippage.

Algorithm:
    1. Average buy and sell prices across all quotes of a currency group
    2. Round each mean to 2 decimals, half away from zero
    3. For each quote, slippage = (price - average) / average, rounded to 4 decimals

.. code-block:: python

    >>> quotes = [
    ...     Quote(Decimal("100"), Decimal("102"), "a"),
    ...     Quote(Decimal("102"), Decimal("104"), "b"),
    ... ]
    >>> average = calculate_average(quotes)
    >>> average.average_buy_price, average.average_sell_price
    (Decimal('101.00'), Decimal('103.00'))
    >>> [s.buy_price_slippage for s in calculate_slippage(quotes, average)]
    [Decimal('-0.0099'), Decimal('0.0099')]
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from .Quote import Average, Quote, Slippage

PRICE_PLACES = Decimal("0.01")
SLIPPAGE_PLACES = Decimal("0.0001")


def _mean(values: list[Decimal]) -> Decimal:
    return sum(values, Decimal(0)) / len(values)


def calculate_average(quotes: Sequence[Quote]) -> Average | None:
    """Average the buy and sell prices of a set of quotes.

    The currency of the result is left unset; the caller knows which group the
    quotes belong to.

    :param quotes: Quotes of a single currency group.
    :returns: Average rounded to 2 decimals, or None if quotes is empty.
    """
    if not quotes:
        return None

    average_buy = _mean([q.buy_price for q in quotes])
    average_sell = _mean([q.sell_price for q in quotes])

    return Average(
        average_buy_price=average_buy.quantize(PRICE_PLACES, rounding=ROUND_HALF_UP),
        average_sell_price=average_sell.quantize(PRICE_PLACES, rounding=ROUND_HALF_UP),
    )


def _relative_deviation(price: Decimal, average: Decimal) -> Decimal:
    deviation = ((price - average) / average).quantize(SLIPPAGE_PLACES, rounding=ROUND_HALF_UP)
    # -0.0000 would serialize as -0.0
    if deviation.is_zero():
        return abs(deviation)
    return deviation


def calculate_slippage(quotes: Sequence[Quote], average: Average) -> list[Slippage]:
    """Compute each quote's relative deviation from the average.

    :param quotes: Quotes the average was computed from.
    :param average: Average of those quotes.
    :returns: One Slippage per quote, in input order.
    :raises ValueError: If either average price is not positive.
    """
    if average.average_buy_price <= 0 or average.average_sell_price <= 0:
        raise ValueError(
            f"Cannot compute slippage against non-positive average "
            f"(buy={average.average_buy_price}, sell={average.average_sell_price})"
        )

    return [
        Slippage(
            buy_price_slippage=_relative_deviation(q.buy_price, average.average_buy_price),
            sell_price_slippage=_relative_deviation(q.sell_price, average.average_sell_price),
            source=q.source,
        )
        for q in quotes
    ]
