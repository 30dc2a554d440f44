"""One-time codes gating the manage-booking lookup."""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import as_utc, utcnow
from ..core.exceptions import NotFoundError, OtpAttemptsExceededError, OtpExpiredError, OtpInvalidError
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.otp import BookingOtp
from .booking_service import BookingService

logger = logging.getLogger(__name__)

OTP_DIGITS = 6


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OtpService:
    """Issues and checks manage-booking codes sent to the lead traveller."""

    def __init__(self, db: AsyncSession, notifications=None):
        self.db = db
        self.notifications = notifications
        self.booking_service = BookingService(db)

    async def request_otp(self, booking_number: str, email: str) -> int:
        """
        Send a fresh code for a booking, replacing any unused one.

        Returns:
            Code lifetime in seconds

        Raises:
            NotFoundError: If the booking number and email do not match
        """
        booking = await self._find_booking(booking_number, email)
        now = utcnow()

        await self.db.execute(
            update(BookingOtp)
            .where(BookingOtp.booking_id == booking.id, BookingOtp.used_at.is_(None))
            .values(used_at=now)
        )

        code = generate_code()
        ttl = timedelta(minutes=settings.otp_ttl_minutes)
        self.db.add(BookingOtp(
            booking_id=booking.id,
            email=email.lower(),
            code_hash=hash_code(code),
            attempts=0,
            expires_at=now + ttl,
        ))
        await self.db.commit()

        if self.notifications is not None:
            await self.notifications.send_otp(
                to=email,
                booking_number=booking.booking_number,
                code=code,
                ttl_minutes=settings.otp_ttl_minutes,
            )

        metrics_collector.record_otp("sent")
        logger.info(
            "Manage-booking code issued",
            extra={"booking_id": str(booking.id), "booking_number": booking.booking_number}
        )
        return int(ttl.total_seconds())

    async def verify_otp(self, booking_number: str, email: str, otp: str) -> Booking:
        """
        Exchange a code for the booking it was issued for.

        Raises:
            NotFoundError: If the booking number and email do not match
            OtpExpiredError: If there is no live code
            OtpAttemptsExceededError: If the code has been guessed too often
            OtpInvalidError: If the code is wrong
        """
        booking = await self._find_booking(booking_number, email)
        record = await self._latest_code(booking)
        max_attempts = settings.otp_max_attempts

        if record is None or as_utc(record.expires_at) <= utcnow():
            metrics_collector.record_otp("expired")
            raise OtpExpiredError()

        if record.attempts >= max_attempts:
            metrics_collector.record_otp("locked")
            raise OtpAttemptsExceededError(max_attempts)

        if not hmac.compare_digest(record.code_hash, hash_code(otp)):
            record.attempts += 1
            attempts = record.attempts
            await self.db.commit()

            logger.warning(
                "Wrong manage-booking code",
                extra={"booking_id": str(booking.id), "attempts": attempts}
            )
            if attempts >= max_attempts:
                metrics_collector.record_otp("locked")
                raise OtpAttemptsExceededError(max_attempts)
            metrics_collector.record_otp("invalid")
            raise OtpInvalidError(attempts_left=max_attempts - attempts)

        record.used_at = utcnow()
        await self.db.commit()

        metrics_collector.record_otp("verified")
        logger.info("Manage-booking code verified", extra={"booking_id": str(booking.id)})
        return await self.booking_service.get_booking_or_raise(booking.id)

    async def _find_booking(self, booking_number: str, email: str) -> Booking:
        booking = await self.booking_service.get_booking_by_number(booking_number.strip().upper())
        lead = None
        if booking is not None:
            lead = next((t for t in booking.travelers if t.is_lead_guest), None)

        if lead is None or lead.email.lower() != email.strip().lower():
            metrics_collector.record_otp("not_found")
            # Same answer whichever check failed
            raise NotFoundError(
                resource_type="booking",
                detail="No booking matches that booking number and email"
            )
        return booking

    async def _latest_code(self, booking: Booking) -> Optional[BookingOtp]:
        stmt = (
            select(BookingOtp)
            .where(BookingOtp.booking_id == booking.id, BookingOtp.used_at.is_(None))
            .order_by(BookingOtp.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
