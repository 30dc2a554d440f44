"""Display-only exchange rates cached from a Frankfurter-compatible endpoint."""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

import httpx

from ..core.config import SUPPORTED_CURRENCIES, settings
from ..core.database import utcnow
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Units of each currency per US dollar, used until the first successful fetch
DEFAULT_RATES: dict[str, float] = {
    "USD": 1.0,
    "NZD": 1.6,
    "AUD": 1.5,
    "EUR": 0.92,
    "GBP": 0.78,
}

# Storefront locale segment -> (currency, region name)
COUNTRY_MAP: dict[str, tuple[str, str]] = {
    "nz": ("NZD", "New Zealand"),
    "au": ("AUD", "Australia"),
    "uk": ("GBP", "United Kingdom"),
    "eu": ("EUR", "Europe"),
    "us": ("USD", "US"),
    "india": ("USD", "India"),
    "global": ("USD", "Global"),
}

# Wait this long before retrying after a failed fetch
FAILURE_BACKOFF_SECONDS = 60


def currency_for_country(segment: Optional[str]) -> str:
    """Currency for a storefront locale segment; unknown segments get the global currency."""
    currency, _ = COUNTRY_MAP.get((segment or "").lower(), COUNTRY_MAP["global"])
    return currency


class ExchangeRateService:
    """
    In-memory exchange rate cache.

    Rates are units of each supported currency per one unit of the base
    currency. Fetch failures are logged and the last known rates are kept.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        base_currency: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.exchange_rate_url
        self.base_currency = base_currency or settings.base_currency
        self.ttl_seconds = settings.exchange_rate_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._transport = transport
        self._rates = self._defaults()
        self._fetched_at: Optional[datetime] = None
        self._next_refresh = 0.0
        self._lock = asyncio.Lock()

    def _defaults(self) -> dict[str, float]:
        base_in_usd = DEFAULT_RATES[self.base_currency]
        return {code: round(value / base_in_usd, 6) for code, value in DEFAULT_RATES.items()}

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    @property
    def stale(self) -> bool:
        return self._fetched_at is None or time.monotonic() >= self._next_refresh

    @property
    def rates(self) -> dict[str, float]:
        return dict(self._rates)

    async def get_rates(self) -> dict[str, float]:
        """Cached rates, refreshed first when past their TTL."""
        if time.monotonic() >= self._next_refresh:
            await self.refresh()
        return self.rates

    async def refresh(self, force: bool = False) -> bool:
        """
        Fetch fresh rates unless another caller just did, or ``force`` is set.

        Returns:
            True if the cache was updated; failures leave it untouched
        """
        async with self._lock:
            if not force and self._fetched_at is not None and time.monotonic() < self._next_refresh:
                return False

            targets = [code for code in SUPPORTED_CURRENCIES if code != self.base_currency]
            try:
                async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                    response = await client.get(
                        self.url,
                        params={"from": self.base_currency, "to": ",".join(targets)},
                    )
                    response.raise_for_status()
                    payload = response.json()
                fetched = {
                    code: float(value)
                    for code, value in payload.get("rates", {}).items()
                    if code in SUPPORTED_CURRENCIES and float(value) > 0
                }
            except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
                self._next_refresh = time.monotonic() + min(FAILURE_BACKOFF_SECONDS, self.ttl_seconds)
                logger.warning(
                    "Exchange rate refresh failed; keeping last known rates",
                    extra={"url": self.url, "error": str(e) or type(e).__name__}
                )
                return False

            self._rates = {**self._rates, **fetched, self.base_currency: 1.0}
            self._fetched_at = utcnow()
            self._next_refresh = time.monotonic() + self.ttl_seconds

            logger.info(
                "Exchange rates refreshed",
                extra={"base": self.base_currency, "currencies": sorted(fetched)}
            )
            return True

    def rate(self, from_currency: str, to_currency: str) -> float:
        """
        Cross rate between two supported currencies via the base currency.

        Raises:
            ValidationError: If either currency is not supported
        """
        unknown = [code for code in (from_currency, to_currency) if code not in self._rates]
        if unknown:
            raise ValidationError(
                detail=f"Unsupported currency: {', '.join(unknown)}",
                violations=[{"path": "currency", "message": f"Must be one of {', '.join(SUPPORTED_CURRENCIES)}"}]
            )
        if from_currency == to_currency:
            return 1.0
        return round(self._rates[to_currency] / self._rates[from_currency], 6)


exchange_rate_service = ExchangeRateService()
