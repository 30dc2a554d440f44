"""Display exchange rates for the storefront currency switcher."""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from ..core.dependencies import ExchangeRatesDep
from ..schemas.currency import ExchangeRates
from ..services.exchange_rate_service import currency_for_country

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/currency", tags=["currency"])


@router.get("/rates", response_model=ExchangeRates)
async def get_rates(
    country: Optional[str] = Query(None, max_length=32, description="Storefront region segment, e.g. nz"),
    exchange_rates=ExchangeRatesDep
) -> JSONResponse:
    """
    Current rates relative to the base currency.

    Never fails on an upstream outage; ``stale`` tells the caller whether
    the last refresh is past its TTL.
    """
    rates = await exchange_rates.get_rates()
    response_data = ExchangeRates(
        base=exchange_rates.base_currency,
        rates=rates,
        fetched_at=exchange_rates.fetched_at,
        stale=exchange_rates.stale,
        country=country.lower() if country else None,
        country_currency=currency_for_country(country) if country else None
    )

    logger.debug("Exchange rates served", extra={"country": country, "stale": response_data.stale})

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
