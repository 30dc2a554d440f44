"""Worker manager for coordinating background tasks."""

import asyncio
import logging

from ..core.config import settings
from .base import BaseWorker
from .exchange_rate_worker import ExchangeRateRefreshWorker
from .idempotency_cleanup_worker import IdempotencyCleanupWorker
from .pending_booking_worker import PendingBookingExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Starts and stops the application's background workers together."""

    def __init__(self):
        self.workers: dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        self.workers["pending_booking_expiry"] = PendingBookingExpiryWorker(interval_seconds=60)
        self.workers["exchange_rate_refresh"] = ExchangeRateRefreshWorker(
            interval_seconds=settings.exchange_rate_ttl_seconds
        )
        self.workers["idempotency_cleanup"] = IdempotencyCleanupWorker(interval_seconds=3600)

    async def start_all(self) -> None:
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error("Failed to start worker", extra={"worker": name, "error": str(e)}, exc_info=True)

        logger.info("Workers started", extra={"workers": sorted(self.workers)})

    async def stop_all(self) -> None:
        """Stop all workers, logging any that fail to stop cleanly."""
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()),
            return_exceptions=True
        )

        for name, result in zip(self.workers.keys(), results):
            if isinstance(result, Exception):
                logger.error("Error stopping worker", extra={"worker": name, "error": str(result)})

        logger.info("Workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> dict[str, bool]:
        return {name: worker.running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
