"""Background workers for the tour shop."""

from .exchange_rate_worker import ExchangeRateRefreshWorker
from .idempotency_cleanup_worker import IdempotencyCleanupWorker
from .pending_booking_worker import PendingBookingExpiryWorker

__all__ = ["ExchangeRateRefreshWorker", "IdempotencyCleanupWorker", "PendingBookingExpiryWorker"]
