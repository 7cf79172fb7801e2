"""SQLAlchemy ORM models for persisted daily rates."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, Numeric, func
from sqlalchemy.orm import Mapped, mapped_column

from dailyfx.database import Base
from dailyfx.utils.currencies import CURRENCY_CODES

RATE_PRECISION = Numeric(18, 6)


def _rate_column() -> Mapped[Optional[Decimal]]:
    return mapped_column(RATE_PRECISION, nullable=True)


class DailyRate(Base):
    """One row per home-timezone business date, one buy/sell pair per currency.

    Values are stored per single unit of the foreign currency.
    """

    __tablename__ = "daily_rates"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)

    INR_buy: Mapped[Optional[Decimal]] = _rate_column()
    INR_sell: Mapped[Optional[Decimal]] = _rate_column()
    USD_buy: Mapped[Optional[Decimal]] = _rate_column()
    USD_sell: Mapped[Optional[Decimal]] = _rate_column()
    EUR_buy: Mapped[Optional[Decimal]] = _rate_column()
    EUR_sell: Mapped[Optional[Decimal]] = _rate_column()
    GBP_buy: Mapped[Optional[Decimal]] = _rate_column()
    GBP_sell: Mapped[Optional[Decimal]] = _rate_column()
    CHF_buy: Mapped[Optional[Decimal]] = _rate_column()
    CHF_sell: Mapped[Optional[Decimal]] = _rate_column()
    AUD_buy: Mapped[Optional[Decimal]] = _rate_column()
    AUD_sell: Mapped[Optional[Decimal]] = _rate_column()
    CAD_buy: Mapped[Optional[Decimal]] = _rate_column()
    CAD_sell: Mapped[Optional[Decimal]] = _rate_column()
    SGD_buy: Mapped[Optional[Decimal]] = _rate_column()
    SGD_sell: Mapped[Optional[Decimal]] = _rate_column()
    JPY_buy: Mapped[Optional[Decimal]] = _rate_column()
    JPY_sell: Mapped[Optional[Decimal]] = _rate_column()
    CNY_buy: Mapped[Optional[Decimal]] = _rate_column()
    CNY_sell: Mapped[Optional[Decimal]] = _rate_column()
    SAR_buy: Mapped[Optional[Decimal]] = _rate_column()
    SAR_sell: Mapped[Optional[Decimal]] = _rate_column()
    QAR_buy: Mapped[Optional[Decimal]] = _rate_column()
    QAR_sell: Mapped[Optional[Decimal]] = _rate_column()
    THB_buy: Mapped[Optional[Decimal]] = _rate_column()
    THB_sell: Mapped[Optional[Decimal]] = _rate_column()
    AED_buy: Mapped[Optional[Decimal]] = _rate_column()
    AED_sell: Mapped[Optional[Decimal]] = _rate_column()
    MYR_buy: Mapped[Optional[Decimal]] = _rate_column()
    MYR_sell: Mapped[Optional[Decimal]] = _rate_column()
    KRW_buy: Mapped[Optional[Decimal]] = _rate_column()
    KRW_sell: Mapped[Optional[Decimal]] = _rate_column()
    SEK_buy: Mapped[Optional[Decimal]] = _rate_column()
    SEK_sell: Mapped[Optional[Decimal]] = _rate_column()
    DKK_buy: Mapped[Optional[Decimal]] = _rate_column()
    DKK_sell: Mapped[Optional[Decimal]] = _rate_column()
    HKD_buy: Mapped[Optional[Decimal]] = _rate_column()
    HKD_sell: Mapped[Optional[Decimal]] = _rate_column()
    KWD_buy: Mapped[Optional[Decimal]] = _rate_column()
    KWD_sell: Mapped[Optional[Decimal]] = _rate_column()
    BHD_buy: Mapped[Optional[Decimal]] = _rate_column()
    BHD_sell: Mapped[Optional[Decimal]] = _rate_column()
    OMR_buy: Mapped[Optional[Decimal]] = _rate_column()
    OMR_sell: Mapped[Optional[Decimal]] = _rate_column()

    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def get_side(self, code: str, side: str) -> Decimal | None:
        return getattr(self, rate_attribute(code, side))

    def set_side(self, code: str, side: str, value: Decimal | None) -> None:
        setattr(self, rate_attribute(code, side), value)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<DailyRate date={self.date.isoformat()}>"


RATE_SIDES = ("buy", "sell")


def rate_attribute(code: str, side: str) -> str:
    """Return the mapped attribute name holding ``side`` for currency ``code``."""

    if side not in RATE_SIDES:
        raise ValueError(f"Unknown rate side '{side}'")
    normalized = code.strip().upper()
    if normalized not in CURRENCY_CODES:
        raise KeyError(f"Currency '{normalized}' has no column in daily_rates")
    return f"{normalized}_{side}"


_missing_columns = [
    rate_attribute(code, side)
    for code in CURRENCY_CODES
    for side in RATE_SIDES
    if rate_attribute(code, side) not in DailyRate.__table__.columns
]
if _missing_columns:  # pragma: no cover - guards edits to the currency list
    raise RuntimeError(f"daily_rates is missing columns: {', '.join(_missing_columns)}")
