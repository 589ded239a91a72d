#!/usr/bin/env python3
"""Currency Exchange API.

Scrapes ARS and BRL quotes from several public sites, averages them, computes
per-source slippage and serves the results over HTTP with a short-lived cache.

Start with ``python -m fxrates.main`` or the ``fxrates`` console script.
"""

import argparse
import logging
import os
import sys

import uvicorn
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from .src.fetchers import get_available_fetchers
from .src.QueryService import QueryService
from .src.QuoteAggregator import QuoteAggregator
from .src.QuoteApi import create_app
from .src.QuoteStore import QuoteStore
from .src.RefreshTimer import RefreshTimer
from .src.ResultCache import ResultCache

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite:///fxrates.db"


def env_flag(name: str) -> bool:
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def database_url_from_env() -> str:
    """Resolve the database URL from the environment.

    DATABASE_URL wins. Otherwise, when DB_HOST is set, a PostgreSQL URL is
    built from DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASSWORD. Without
    either, a local SQLite file is used.

    :returns: SQLAlchemy database URL.
    """
    url = os.environ.get("DATABASE_URL")
    if url:
        return url

    host = os.environ.get("DB_HOST")
    if not host:
        return DEFAULT_SQLITE_URL

    return URL.create(
        "postgresql+psycopg2",
        username=os.environ.get("DB_USER") or "postgres",
        password=os.environ.get("DB_PASSWORD") or "postgres",
        host=host,
        port=int(os.environ.get("DB_PORT") or "5432"),
        database=os.environ.get("DB_NAME") or "currency_db",
    ).render_as_string(hide_password=False)


def masked_url(url: str) -> str:
    """Render a database URL with the password masked."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid database URL>"


def main() -> None:
    """Main entry point for the Currency Exchange API."""
    parser = argparse.ArgumentParser(
        description="Currency Exchange API: aggregated ARS and BRL quotes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Quote sources:
  {', '.join(get_available_fetchers())}

Examples:
  # Serve on port 3000 with a local SQLite history
  python -m fxrates.main

  # PostgreSQL history, refresh every minute
  DB_HOST=localhost DB_NAME=currency_db python -m fxrates.main --refresh-period 60

Environment variables (CLI args take precedence):
  HOST, PORT, DATABASE_URL, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
  DISABLE_PERSISTENCE, REFRESH_PERIOD, CACHE_TTL, FETCH_TIMEOUT, STRICT_CURRENCY
""",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Interface to listen on (default: 0.0.0.0)",
        default=os.environ.get("HOST") or "0.0.0.0",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: 3000)",
        default=int(os.environ.get("PORT") or "3000"),
    )

    parser.add_argument(
        "--database-url",
        dest="database_url",
        type=str,
        help="SQLAlchemy URL of the quote history database",
        default=database_url_from_env(),
    )

    parser.add_argument(
        "--no-persistence",
        dest="no_persistence",
        action="store_true",
        help="Do not record quotes to the history database",
        default=env_flag("DISABLE_PERSISTENCE"),
    )

    parser.add_argument(
        "--refresh-period",
        dest="refresh_period",
        type=float,
        help="Seconds between background quote refreshes (minimum: 1, default: 30)",
        default=float(os.environ.get("REFRESH_PERIOD") or "30"),
    )

    parser.add_argument(
        "--cache-ttl",
        dest="cache_ttl",
        type=float,
        help="Seconds a computed result stays cached (default: 60)",
        default=float(os.environ.get("CACHE_TTL") or "60"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual source requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--strict-currency",
        dest="strict_currency",
        action="store_true",
        help="Answer 400 for unknown currencies instead of defaulting to ARS",
        default=env_flag("STRICT_CURRENCY"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.refresh_period < 1:
        parser.error("--refresh-period must be at least 1 second")

    if args.cache_ttl <= 0:
        parser.error("--cache-ttl must be positive")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    # Log configuration
    logger.info("=" * 60)
    logger.info("Currency Exchange API")
    logger.info("=" * 60)
    logger.info(f"Listen:            {args.host}:{args.port}")
    logger.info(
        "History DB:        disabled" if args.no_persistence
        else f"History DB:        {masked_url(args.database_url)}"
    )
    logger.info(f"Refresh Period:    {args.refresh_period:g}s")
    logger.info(f"Cache TTL:         {args.cache_ttl:g}s")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout:g}s")
    logger.info(f"Strict Currency:   {'yes' if args.strict_currency else 'no'}")
    logger.info("=" * 60)

    store = None
    if not args.no_persistence:
        try:
            store = QuoteStore.from_url(args.database_url)
            store.init_db()
        except SQLAlchemyError as e:
            logger.error(f"Database initialization error: {e}")
            sys.exit(1)

    aggregator = QuoteAggregator(store=store, fetch_timeout=args.fetch_timeout)
    service = QueryService(
        aggregator,
        ResultCache(ttl=args.cache_ttl),
        strict_currency=args.strict_currency,
    )
    refresh_timer = RefreshTimer(
        aggregator,
        period=args.refresh_period,
        on_refresh=service.warm,
    )
    app = create_app(service, refresh_timer=refresh_timer)

    try:
        # uvicorn stops accepting connections and drains them on SIGTERM/SIGINT
        uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        if store is not None:
            store.dispose()
    logger.info("HTTP server closed")


if __name__ == "__main__":
    main()
