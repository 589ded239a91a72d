"""
Currency Exchange API - Quote Aggregation Module

This module scrapes ARS and BRL quotes from public sites and derives
cross-source statistics:
- Quote: Quote, Average and Slippage value objects, CurrencyGroup enum
- QuoteAggregator: Sequential per-group fetching, concurrent across groups
- QuoteStatistics: Rounded averages and per-source slippage
- ResultCache: Short-TTL cache with lazy eviction
- QueryService: Cache-first answers for the HTTP endpoints
- RefreshTimer: Background refresh keeping the cache warm
- fetchers: Site-specific quote scrapers
"""

from .Quote import Average, CurrencyGroup, Quote, Slippage
from .QueryService import QueryResult, QueryService, UnsupportedCurrencyError
from .QuoteAggregator import QuoteAggregator
from .QuoteStatistics import calculate_average, calculate_slippage
from .QuoteStore import QuoteStore
from .RefreshTimer import RefreshTimer
from .ResultCache import ResultCache

__all__ = [
    "Average",
    "CurrencyGroup",
    "Quote",
    "QueryResult",
    "QueryService",
    "QuoteAggregator",
    "QuoteStore",
    "RefreshTimer",
    "ResultCache",
    "Slippage",
    "UnsupportedCurrencyError",
    "calculate_average",
    "calculate_slippage",
]
