"""Exchange rate Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ExchangeRates(BaseModel):
    """Cached display exchange rates relative to the base currency."""

    base: str = Field(..., description="Base currency")
    rates: dict[str, float] = Field(..., description="Units of each currency per unit of base")
    fetched_at: Optional[datetime] = Field(None, description="Last successful refresh (ISO 8601)")
    stale: bool = Field(..., description="True when the cache is past its TTL or never refreshed")
    country: Optional[str] = Field(None, description="Requested storefront region")
    country_currency: Optional[str] = Field(None, description="Currency for the requested region")
