"""QuoteStore: historical record of every scraped quote.

Writes are best-effort. A failing database never affects quote aggregation or
HTTP responses; errors are logged and swallowed here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Engine, Index, Integer, Numeric, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .Quote import CurrencyGroup, Quote

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class QuoteOrm(Base):
    __tablename__ = "quotes"
    __table_args__ = (Index("idx_currency_created", "currency", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    buy_price: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    sell_price: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class QuoteStore:
    """Persists scraped quotes and reads back recent history.

    :ivar engine: SQLAlchemy engine the store writes to.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessionmaker = sessionmaker(engine)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> QuoteStore:
        """Create a store for a database URL.

        In-memory SQLite databases share one connection so that every thread
        sees the same data.

        :param url: SQLAlchemy database URL.
        :param echo: Log every SQL statement.
        :returns: New QuoteStore.
        """
        if url.startswith("sqlite") and ":memory:" in url:
            engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif url.startswith("sqlite"):
            engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        else:
            engine = create_engine(url, echo=echo, pool_pre_ping=True)
        return cls(engine)

    def init_db(self) -> None:
        """Create the quotes table and index if missing.

        :raises SQLAlchemyError: If the database is unreachable.
        """
        Base.metadata.create_all(self.engine)
        logger.info("Database initialized successfully")

    def record_quote(
        self,
        currency: CurrencyGroup | str,
        buy_price: Decimal,
        sell_price: Decimal,
        source: str,
    ) -> bool:
        """Insert one quote into the history.

        :param currency: Currency group the quote belongs to.
        :param buy_price: Buy price.
        :param sell_price: Sell price.
        :param source: Source identifier.
        :returns: True if the row was written, False if the write failed.
        """
        code = currency.value if isinstance(currency, CurrencyGroup) else str(currency)
        try:
            with self._sessionmaker() as session:
                session.add(
                    QuoteOrm(
                        currency=code,
                        buy_price=buy_price,
                        sell_price=sell_price,
                        source=source,
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error saving quote from {source}: {e}")
            return False
        return True

    def recent_quotes(self, currency: CurrencyGroup | str, minutes: int = 1) -> list[Quote]:
        """Read quotes recorded within the last few minutes, newest first.

        :param currency: Currency group to read.
        :param minutes: Size of the window in minutes.
        :returns: Recorded quotes, or an empty list if the read failed.
        """
        code = currency.value if isinstance(currency, CurrencyGroup) else str(currency)
        since = _utcnow() - timedelta(minutes=minutes)
        statement = (
            select(QuoteOrm)
            .where(QuoteOrm.currency == code, QuoteOrm.created_at > since)
            .order_by(QuoteOrm.created_at.desc(), QuoteOrm.id.desc())
        )
        try:
            with self._sessionmaker() as session:
                rows = session.scalars(statement).all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching recent {code} quotes: {e}")
            return []

        return [
            Quote(buy_price=Decimal(row.buy_price), sell_price=Decimal(row.sell_price), source=row.source)
            for row in rows
            if row.buy_price > 0 and row.sell_price > 0
        ]

    def dispose(self) -> None:
        """Release pooled database connections."""
        self.engine.dispose()
