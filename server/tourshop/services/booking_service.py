"""Booking service: lookups, admin status changes and expiry of unpaid bookings."""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.database import as_utc, parse_resource_id, utcnow
from ..core.exceptions import ConflictError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.departure import TourDeparture
from .departure_service import DepartureService

logger = logging.getLogger(__name__)

# Bookings in these states can never hold spaces again
TERMINAL_STATUSES = (BookingStatus.CANCELLED, BookingStatus.EXPIRED)


def capture_claim_cutoff(now: Optional[datetime] = None) -> datetime:
    """Captures started before this instant are treated as abandoned."""
    return (now or utcnow()) - timedelta(seconds=settings.capture_claim_seconds)


def capture_in_progress(booking: Booking, now: Optional[datetime] = None) -> bool:
    started = as_utc(booking.capture_started_at)
    return started is not None and started > capture_claim_cutoff(now)


class BookingService:
    """Service for booking lookups and lifecycle changes outside the payment handshake."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.departure_service = DepartureService(db)

    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID with travellers, room guests, add-ons and tour loaded."""
        stmt = (
            select(Booking)
            .options(
                selectinload(Booking.travelers),
                selectinload(Booking.room_guests),
                selectinload(Booking.add_ons),
                selectinload(Booking.tour),
            )
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID or raise NotFoundError.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def get_customer_booking(self, booking_id: str, customer_ref: str) -> Booking:
        """
        Get a booking owned by the caller.

        Raises:
            NotFoundError: If the booking does not exist or belongs to someone else
        """
        booking = await self.get_booking(parse_resource_id(booking_id, "booking"))
        if booking is None or booking.customer_ref != customer_ref:
            logger.warning(
                "Booking not found for customer",
                extra={"booking_id": booking_id, "customer_ref": customer_ref}
            )
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def get_booking_by_number(self, booking_number: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.booking_number == booking_number)
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        return await self.get_booking(booking.id) if booking else None

    async def lock_for_update(self, booking: Booking) -> tuple[Booking, TourDeparture]:
        """
        Take the departure lock and re-read the booking under it.

        Every change that moves spaces goes through this, so the booking status
        seen afterwards is the one to act on.
        """
        departure = await self.departure_service.get_departure_with_lock(booking.departure_id)
        return await self.get_booking_or_raise(booking.id), departure

    def release(
        self,
        booking: Booking,
        departure: TourDeparture,
        status: BookingStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> None:
        """
        Move a space-holding booking to a terminal status and return its spaces.

        Callers must hold the departure lock and commit afterwards.
        """
        if booking.holds_spaces:
            self.departure_service.release_spaces(departure, booking.num_guests)
        booking.status = status.value
        if payment_status is not None:
            booking.payment_status = payment_status.value
        booking.expires_at = None

    async def update_booking_status(self, booking_id: str, status: str) -> Booking:
        """
        Admin status change.

        Cancelling a booking that still holds spaces releases them.

        Raises:
            NotFoundError: If booking not found
            ConflictError: If a cancelled or expired booking would be reactivated
        """
        booking = await self.get_booking_or_raise(parse_resource_id(booking_id, "booking"))
        booking, departure = await self.lock_for_update(booking)
        new_status = BookingStatus(status)
        old_status = BookingStatus(booking.status)

        if new_status == old_status:
            return booking

        if old_status in TERMINAL_STATUSES:
            raise ConflictError(
                detail=f"Booking {booking.booking_number} is {old_status.value} and cannot be reactivated",
                conflicting_resource={"id": str(booking.id), "status": old_status.value}
            )

        if capture_in_progress(booking):
            raise ConflictError(
                detail=f"Booking {booking.booking_number} has a payment capture in progress",
                conflicting_resource={"id": str(booking.id), "status": old_status.value}
            )

        if new_status == BookingStatus.CANCELLED:
            payment_status = (
                PaymentStatus.CANCELLED if booking.payment_status == PaymentStatus.PENDING else None
            )
            self.release(booking, departure, BookingStatus.CANCELLED, payment_status)
        else:
            booking.status = new_status.value
            if old_status == BookingStatus.PENDING:
                # Only PENDING bookings are swept by the expiry worker
                booking.expires_at = None

        await self.db.commit()

        logger.info(
            "Booking status updated",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "old_status": old_status.value,
                "new_status": new_status.value
            }
        )
        return await self.get_booking_or_raise(booking.id)

    async def update_payment_status(self, booking_id: str, payment_status: str) -> Booking:
        """
        Admin payment status change, e.g. recording an offline balance payment.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking_or_raise(parse_resource_id(booking_id, "booking"))
        new_status = PaymentStatus(payment_status)
        old_status = booking.payment_status

        booking.payment_status = new_status.value
        if new_status == PaymentStatus.PAID:
            booking.balance_due = 0
            booking.paid_at = booking.paid_at or utcnow()
        elif new_status == PaymentStatus.DEPOSIT_PAID:
            if booking.deposit_paid is None:
                booking.deposit_paid = booking.amount_due_now
            booking.balance_due = max(booking.total_price - booking.deposit_paid, 0)
            booking.paid_at = booking.paid_at or utcnow()

        await self.db.commit()

        logger.info(
            "Booking payment status updated",
            extra={
                "booking_id": str(booking.id),
                "old_payment_status": old_status,
                "new_payment_status": new_status.value
            }
        )
        return await self.get_booking_or_raise(booking.id)

    async def expire_pending_bookings(self, now: Optional[datetime] = None, batch_size: int = 100) -> int:
        """
        Expire PENDING bookings whose payment window has passed.

        Each booking is handled in its own transaction under its departure lock.

        Returns:
            Number of bookings expired
        """
        now = now or utcnow()
        stmt = (
            select(Booking.id)
            .where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.expires_at <= now,
                or_(Booking.capture_started_at.is_(None), Booking.capture_started_at <= capture_claim_cutoff(now)),
            )
            .order_by(Booking.expires_at)
            .limit(batch_size)
        )
        result = await self.db.execute(stmt)
        booking_ids = list(result.scalars())

        expired = 0
        for booking_id in booking_ids:
            booking = await self.get_booking(booking_id)
            if booking is None:
                continue
            booking, departure = await self.lock_for_update(booking)
            # A capture may have started or landed since the sweep query ran
            if booking.status != BookingStatus.PENDING or capture_in_progress(booking, now):
                await self.db.commit()
                continue

            self.release(booking, departure, BookingStatus.EXPIRED, PaymentStatus.CANCELLED)
            await self.db.commit()
            expired += 1

            logger.info(
                "Pending booking expired",
                extra={
                    "booking_id": str(booking.id),
                    "booking_number": booking.booking_number,
                    "released_spaces": booking.num_guests
                }
            )

        if expired:
            metrics_collector.record_pending_expired(expired)
        return expired
