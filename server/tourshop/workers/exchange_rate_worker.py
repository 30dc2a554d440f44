"""Background worker keeping the exchange rate cache warm."""

from ..services.exchange_rate_service import exchange_rate_service
from .base import BaseWorker


class ExchangeRateRefreshWorker(BaseWorker):
    """Refreshes display exchange rates once per TTL."""

    def __init__(self, interval_seconds: int = 3600, service=None):
        super().__init__(name="ExchangeRateRefresh", interval_seconds=interval_seconds)
        self.service = service or exchange_rate_service

    async def process(self) -> bool:
        # Failures are logged by the service and the last rates are kept
        return await self.service.refresh(force=True)
