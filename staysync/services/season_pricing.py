"""
Season Price Resolver

Maps a calendar day to the nightly rate of the Rentals United season that
covers it. Pure functions, no I/O.

Rules:
1. Seasons are scanned in the order upstream listed them; the first one
   with date_from <= day <= date_to wins (overlaps resolve deterministically).
2. A day no season covers (gaps at season boundaries) gets the minimum
   price across all seasons, and the condition is logged.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonPriceInterval:
    """Nightly price for every day in [date_from, date_to] (inclusive)."""
    date_from: date
    date_to: date
    price: Decimal

    def covers(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to


@dataclass(frozen=True)
class PriceResolution:
    price: Decimal
    fallback: bool  # True when no season covered the day


def fallback_price(seasons: Sequence[SeasonPriceInterval]) -> Decimal:
    return min(season.price for season in seasons)


def resolve_price(seasons: Sequence[SeasonPriceInterval], day: date) -> PriceResolution:
    if not seasons:
        raise ValueError("resolve_price needs at least one season")

    for season in seasons:
        if season.covers(day):
            return PriceResolution(price=season.price, fallback=False)

    price = fallback_price(seasons)
    logger.warning(f"⚠️  No season found for {day.isoformat()}, using min price: {price}")
    return PriceResolution(price=price, fallback=True)


def price_for_date(seasons: Sequence[SeasonPriceInterval], day: date) -> Decimal:
    """Nightly price for a single day."""
    return resolve_price(seasons, day).price
