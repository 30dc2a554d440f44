"""Background worker for expiring unpaid bookings."""

import logging

from ..core.database import async_session_factory
from ..services.booking_service import BookingService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class PendingBookingExpiryWorker(BaseWorker):
    """
    Expires PENDING bookings whose payment window has passed.

    Each expired booking returns its travellers' spaces to the departure.
    """

    def __init__(self, interval_seconds: int = 60, session_factory=None, batch_size: int = 100):
        super().__init__(name="PendingBookingExpiry", interval_seconds=interval_seconds)
        self.session_factory = session_factory or async_session_factory
        self.batch_size = batch_size

    async def process(self) -> int:
        async with self.session_factory() as db:
            try:
                expired_count = await BookingService(db).expire_pending_bookings(batch_size=self.batch_size)
            except Exception:
                await db.rollback()
                raise

        if expired_count:
            logger.info(
                "Expired pending bookings",
                extra={"expired_count": expired_count, "worker": self.name}
            )
        return expired_count
