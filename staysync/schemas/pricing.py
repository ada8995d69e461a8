"""
Pricing Schemas

Pydantic models for the cached search and quote responses.
Money is rounded to 2 decimals (half up) here and only here.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from ..config import settings

CENTS = Decimal("0.01")


def quantize_money(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class SearchResultResponse(BaseModel):
    """One bookable unit for the requested stay"""
    unit_id: str
    unit_name: str
    building_id: Optional[str] = None
    room_type: Optional[str] = None
    nights: int
    total_price: Decimal
    price_per_night: Decimal
    currency: str = Field(default_factory=lambda: settings.cache_currency)

    @field_validator('total_price', 'price_per_night')
    @classmethod
    def round_money(cls, v):
        return quantize_money(v)

    @classmethod
    def from_result(cls, result) -> "SearchResultResponse":
        return cls(
            unit_id=result.unit.id,
            unit_name=result.unit.name,
            building_id=result.unit.building_id,
            room_type=result.unit.room_type,
            nights=result.nights,
            total_price=result.total_price,
            price_per_night=result.price_per_night
        )


class SearchResponse(BaseModel):
    check_in: date
    check_out: date
    nights: int
    count: int
    results: List[SearchResultResponse]


class DailyPriceResponse(BaseModel):
    """Schema for a single cached night"""
    date: date
    price: Decimal
    is_available: bool

    @field_validator('price')
    @classmethod
    def round_money(cls, v):
        return quantize_money(v)

    class Config:
        from_attributes = True


class QuoteResponse(BaseModel):
    """
    status:
    - available: every night cached and open, totals filled in
    - unavailable: at least one night is closed
    - insufficient_data: fewer cached nights than requested (cached_nights)
    """
    unit_id: str
    check_in: date
    check_out: date
    status: str
    nights: int
    cached_nights: int
    total_price: Optional[Decimal] = None
    price_per_night: Optional[Decimal] = None
    currency: str = Field(default_factory=lambda: settings.cache_currency)
    daily_breakdown: List[DailyPriceResponse] = []

    @field_validator('total_price', 'price_per_night')
    @classmethod
    def round_money(cls, v):
        return quantize_money(v)

    @classmethod
    def from_quote(cls, quote) -> "QuoteResponse":
        return cls(
            unit_id=quote.unit_id,
            check_in=quote.check_in,
            check_out=quote.check_out,
            status=quote.status.value,
            nights=quote.nights,
            cached_nights=quote.cached_nights,
            total_price=quote.total_price,
            price_per_night=quote.price_per_night,
            daily_breakdown=[DailyPriceResponse.model_validate(day) for day in quote.daily_breakdown]
        )
