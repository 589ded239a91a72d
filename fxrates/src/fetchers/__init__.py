"""
Quote fetchers for the scraped exchange-rate sites.

This module provides a uniform interface over the site-specific scraping
rules, so any one source can be replaced without touching aggregation.

Usage:
    from fxrates.src.fetchers import get_fetcher, get_group_fetchers

    # Every source quoting ARS, in registration order
    fetchers = get_group_fetchers(CurrencyGroup.ARS)
    # [AmbitoFetcher, DolarHoyFetcher, CronistaFetcher]

    # A single source
    quote = await get_fetcher("wise").fetch()
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherError,
    FetcherHTTPError,
    RateFetcher,
    get_available_fetchers,
    get_fetcher,
    get_group_fetchers,
    parse_price,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration (ARS first, then BRL)
from .ambito import AmbitoFetcher
from .dolarhoy import DolarHoyFetcher
from .cronista import CronistaFetcher
from .wise import WiseFetcher
from .nubank import NubankFetcher
from .nomadglobal import NomadGlobalFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "RateFetcher",
    "FetcherError",
    "FetcherHTTPError",
    "parse_price",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "get_group_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "AmbitoFetcher",
    "CronistaFetcher",
    "DolarHoyFetcher",
    "NomadGlobalFetcher",
    "NubankFetcher",
    "WiseFetcher",
]
