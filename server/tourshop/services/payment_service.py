"""Payment service: the order-then-capture handshake for checkout sessions."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import (
    CheckoutIncompleteError,
    ConflictError,
    InternalServerError,
    PaymentDeclinedError,
    PaymentGatewayError,
)
from ..core.observability import metrics_collector
from ..models.booking import (
    Booking,
    BookingAddOn,
    BookingRoomGuest,
    BookingStatus,
    BookingTraveler,
    PaymentStatus,
    PaymentType,
)
from ..models.checkout import CheckoutSession, CheckoutStatus
from ..models.departure import TourDeparture
from ..payments.base import PaymentGateway
from .booking_service import TERMINAL_STATUSES, BookingService, capture_in_progress
from .checkout_service import CheckoutService, CheckoutSnapshot
from .departure_service import DepartureService

logger = logging.getLogger(__name__)

BOOKING_NUMBER_ATTEMPTS = 10


@dataclass
class CreatedOrder:
    """A pending booking and the processor order opened for it."""

    booking: Booking
    order_id: str


class PaymentService:
    """Service for creating, capturing and abandoning payment orders."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway, notifications=None):
        self.db = db
        self.gateway = gateway
        self.notifications = notifications
        self.checkout_service = CheckoutService(db)
        self.departure_service = DepartureService(db)
        self.booking_service = BookingService(db)

    async def create_order(self, session_id: str, customer_ref: str) -> CreatedOrder:
        """
        Turn a READY checkout into a PENDING booking with a processor order.

        The price is recomputed from the catalog and spaces are taken in a short
        transaction under the departure lock. The processor is called after that
        commit; if it fails, the booking is removed and its spaces returned.

        Raises:
            NotFoundError: If the session is unknown to the caller
            ConflictError: If the session was already ordered
            CheckoutIncompleteError: If the session is not ready
            CheckoutStepError: If saved data no longer validates
            DepartureUnavailableError: If the departure filled up meanwhile
            PaymentDeclinedError, PaymentGatewayError: If the processor fails
        """
        session = await self.checkout_service.get_session(session_id, customer_ref)
        if session.status == CheckoutStatus.ORDERED:
            raise self._already_ordered(session)

        submitted = session.step_data
        snapshot = await self.checkout_service.validate_complete(session)
        price = snapshot.price
        if price.amount_due_now <= 0:
            raise CheckoutIncompleteError(session_id=str(session.id), detail="There is nothing to pay for this checkout")

        try:
            departure = await self.departure_service.get_departure_with_lock(snapshot.departure.id)

            # Another request may have ordered or edited the checkout while this one waited
            session = await self.checkout_service.get_session(session_id, customer_ref, for_update=True)
            if session.status == CheckoutStatus.ORDERED:
                raise self._already_ordered(session)
            if session.status != CheckoutStatus.READY or session.step_data != submitted:
                raise CheckoutIncompleteError(
                    session_id=str(session.id),
                    detail="Checkout changed while the order was being placed"
                )

            self.departure_service.take_spaces(departure, price.travelers)

            booking = await self._build_booking(snapshot, customer_ref)
            self.db.add(booking)
            await self.db.flush()

            session.status = CheckoutStatus.ORDERED.value
            session.booking_id = booking.id
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        booking_id = booking.id
        try:
            order_id = await self.gateway.create_order(price.amount_due_now, price.currency, booking.booking_number)
        except (PaymentDeclinedError, PaymentGatewayError) as e:
            await self._discard_booking(booking_id)
            metrics_collector.record_payment_failure("order_" + e.problem_details.get("code", "error").lower())
            logger.warning(
                "Payment order creation failed; booking discarded",
                extra={"checkout_session_id": session_id, "error": str(e.detail)}
            )
            raise
        except Exception:
            await self._discard_booking(booking_id)
            raise

        booking.payment_order_id = order_id
        await self.db.commit()

        metrics_collector.record_order_created(price.currency)
        logger.info(
            "Payment order created",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "order_id": order_id,
                "amount": price.amount_due_now,
                "currency": price.currency,
                "payment_type": price.payment_type.value
            }
        )

        return CreatedOrder(booking=booking, order_id=order_id)

    async def capture_order(self, booking_id: str, order_id: str, customer_ref: str) -> Booking:
        """
        Capture an approved order and confirm the booking.

        The booking is claimed and the departure lock released before the
        processor is called. While the claim is fresh, cancellation, expiry and
        a second capture leave the booking alone.

        Raises:
            NotFoundError: If the booking is unknown to the caller
            ConflictError: If the order does not match, the booking is no longer pending,
                or another capture is in flight
            PaymentDeclinedError: Booking is cancelled and its spaces released
            PaymentGatewayError: Booking stays PENDING so the capture can be retried
        """
        booking = await self.booking_service.get_customer_booking(booking_id, customer_ref)
        if booking.payment_order_id != order_id:
            raise ConflictError(
                detail="Order does not belong to this booking",
                conflicting_resource={"booking_id": str(booking.id), "order_id": order_id}
            )

        if booking.payment_status in (PaymentStatus.PAID, PaymentStatus.DEPOSIT_PAID):
            logger.info(
                "Capture replayed for paid booking",
                extra={"booking_id": str(booking.id), "order_id": order_id}
            )
            return booking

        booking, _ = await self.booking_service.lock_for_update(booking)
        if booking.status != BookingStatus.PENDING:
            conflict = ConflictError(
                detail=f"Booking {booking.booking_number} is {booking.status} and cannot be paid",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status}
            )
            await self.db.rollback()
            raise conflict
        if capture_in_progress(booking):
            conflict = ConflictError(
                detail=f"A payment capture for booking {booking.booking_number} is already in progress",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status}
            )
            await self.db.rollback()
            raise conflict

        booking.capture_started_at = utcnow()
        claimed_id = booking.id
        await self.db.commit()

        try:
            result = await self.gateway.capture_order(order_id)
        except PaymentDeclinedError:
            booking, departure = await self._end_capture(claimed_id)
            if booking.status == BookingStatus.PENDING:
                self.booking_service.release(booking, departure, BookingStatus.CANCELLED, PaymentStatus.FAILED)
            await self.db.commit()
            metrics_collector.record_payment_failure("capture_declined")
            logger.warning(
                "Payment capture declined; booking cancelled",
                extra={"booking_id": str(claimed_id), "order_id": order_id}
            )
            raise
        except Exception:
            await self._end_capture(claimed_id)
            await self.db.commit()
            metrics_collector.record_payment_failure("capture_gateway_error")
            raise

        booking, _ = await self._end_capture(claimed_id)
        if not result.completed:
            await self.db.commit()
            metrics_collector.record_payment_failure("capture_not_completed")
            raise PaymentGatewayError("capture_order", f"capture status {result.status}")

        captured = result.amount or booking.amount_due_now
        if booking.payment_type == PaymentType.DEPOSIT:
            booking.payment_status = PaymentStatus.DEPOSIT_PAID.value
            booking.deposit_paid = captured
        else:
            booking.payment_status = PaymentStatus.PAID.value
        booking.balance_due = max(booking.total_price - captured, 0)
        booking.payment_capture_id = result.capture_id
        booking.paid_at = utcnow()

        if booking.status != BookingStatus.PENDING:
            # Only reachable once a claim outlived capture_claim_seconds
            conflict = ConflictError(
                detail=f"Payment was taken but booking {booking.booking_number} is {booking.status}; contact us",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status}
            )
            await self.db.commit()
            logger.error(
                "Payment captured for a booking that is no longer pending",
                extra={"booking_id": str(claimed_id), "order_id": order_id, "capture_id": result.capture_id}
            )
            raise conflict

        booking.status = BookingStatus.CONFIRMED.value
        booking.expires_at = None
        await self.db.commit()

        metrics_collector.record_payment_captured(str(booking.payment_type))
        logger.info(
            "Payment captured",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "capture_id": result.capture_id,
                "captured": captured,
                "balance_due": booking.balance_due
            }
        )

        booking = await self.booking_service.get_booking_or_raise(booking.id)
        await self._send_confirmation(booking, captured)
        return booking

    async def cancel_order(self, booking_id: str, customer_ref: str) -> Booking:
        """
        Abandon an unpaid order and release its spaces. Repeat calls are no-ops.

        Raises:
            NotFoundError: If the booking is unknown to the caller
            ConflictError: If the booking has already been paid
        """
        booking = await self.booking_service.get_customer_booking(booking_id, customer_ref)
        if booking.status in TERMINAL_STATUSES:
            return booking

        booking, departure = await self.booking_service.lock_for_update(booking)
        if booking.status in TERMINAL_STATUSES:
            await self.db.commit()
            return booking
        if booking.status != BookingStatus.PENDING:
            conflict = ConflictError(
                detail=f"Booking {booking.booking_number} is {booking.status}; contact us to cancel a paid booking",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status}
            )
            await self.db.rollback()
            raise conflict
        if capture_in_progress(booking):
            conflict = ConflictError(
                detail=f"A payment capture for booking {booking.booking_number} is in progress",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status}
            )
            await self.db.rollback()
            raise conflict

        self.booking_service.release(booking, departure, BookingStatus.CANCELLED, PaymentStatus.CANCELLED)
        await self.db.commit()

        logger.info(
            "Payment order abandoned",
            extra={"booking_id": str(booking.id), "booking_number": booking.booking_number}
        )
        return await self.booking_service.get_booking_or_raise(booking.id)

    @staticmethod
    def _already_ordered(session: CheckoutSession) -> ConflictError:
        return ConflictError(
            detail="Checkout has already been turned into a booking",
            conflicting_resource={"checkout_session_id": str(session.id), "booking_id": str(session.booking_id)}
        )

    async def _end_capture(self, booking_id: UUID) -> tuple[Booking, TourDeparture]:
        """Re-take the departure lock after a capture call and drop the claim. Caller commits."""
        booking = await self.booking_service.get_booking_or_raise(booking_id)
        booking, departure = await self.booking_service.lock_for_update(booking)
        booking.capture_started_at = None
        return booking, departure

    async def _discard_booking(self, booking_id: UUID) -> None:
        """Undo a booking whose processor order was never opened; the checkout is READY again."""
        booking = await self.booking_service.get_booking(booking_id)
        if booking is None:
            return
        booking, departure = await self.booking_service.lock_for_update(booking)
        if booking.holds_spaces:
            self.departure_service.release_spaces(departure, booking.num_guests)

        if booking.checkout_session_id is not None:
            session = await self.db.get(CheckoutSession, booking.checkout_session_id, populate_existing=True)
            if session is not None and session.booking_id == booking.id:
                session.status = CheckoutStatus.READY.value
                session.booking_id = None
                await self.db.flush()

        await self.db.delete(booking)
        await self.db.commit()

    async def _build_booking(self, snapshot: CheckoutSnapshot, customer_ref: str) -> Booking:
        price = snapshot.price
        travellers = snapshot.travellers.travelers
        roommates = snapshot.rooms.roommates

        return Booking(
            booking_number=await self._new_booking_number(),
            tour_id=snapshot.tour.id,
            departure_id=snapshot.departure.id,
            room_option_id=snapshot.room_option.id,
            checkout_session_id=snapshot.session.id,
            customer_ref=customer_ref,
            start_date=snapshot.departure.departure_date,
            end_date=snapshot.departure.end_date,
            num_guests=price.travelers,
            total_price=price.total,
            amount_due_now=price.amount_due_now,
            deposit_paid=None,
            balance_due=price.balance_due,
            donation=price.donation,
            currency=price.currency,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_type=price.payment_type.value,
            expires_at=utcnow() + timedelta(minutes=settings.pending_booking_ttl_minutes),
            special_requests=snapshot.travellers.special_requests,
            emergency_contact=snapshot.travellers.emergency_contact.model_dump(),
            insurance_required=snapshot.extras.insurance_required,
            insurance_details=snapshot.extras.insurance_details,
            updates_consent=snapshot.payment.updates_consent,
            travelers=[
                BookingTraveler(
                    position=position,
                    title=traveller.title,
                    first_name=traveller.first_name,
                    middle_name=traveller.middle_name,
                    last_name=traveller.last_name,
                    date_of_birth=traveller.date_of_birth,
                    email=traveller.email,
                    phone=traveller.phone,
                    nationality=traveller.nationality,
                    passport_no=traveller.passport_no,
                    address=traveller.address,
                    is_lead_guest=traveller.is_lead_guest,
                )
                for position, traveller in enumerate(travellers)
            ],
            room_guests=[
                BookingRoomGuest(
                    room_option_id=snapshot.room_option.id,
                    room_type=snapshot.room_option.room_type,
                    guest_name=f"{traveller.first_name} {traveller.last_name}",
                    share_with=roommates[position] if position < len(roommates) else None,
                )
                for position, traveller in enumerate(travellers)
            ],
            add_ons=[
                BookingAddOn(
                    trip_extra_id=UUID(extra.trip_extra_id) if extra.trip_extra_id else None,
                    type=extra.type,
                    name=extra.name,
                    unit_price=extra.unit_price,
                    quantity=extra.quantity,
                )
                for extra in price.extras
            ],
        )

    async def _new_booking_number(self) -> str:
        for _ in range(BOOKING_NUMBER_ATTEMPTS):
            candidate = f"BK-{secrets.randbelow(1_000_000):06d}"
            taken = await self.db.scalar(select(Booking.id).where(Booking.booking_number == candidate))
            if taken is None:
                return candidate
        raise InternalServerError(detail="Could not allocate a booking number")

    async def _send_confirmation(self, booking: Booking, captured: int) -> None:
        if self.notifications is None:
            return
        lead = next((t for t in booking.travelers if t.is_lead_guest), None)
        if lead is None:
            return
        try:
            await self.notifications.send_booking_confirmation(
                to=lead.email,
                booking_number=booking.booking_number,
                tour_title=booking.tour.title,
                start_date=booking.start_date.isoformat(),
                amount_paid=captured,
                balance_due=booking.balance_due,
                currency=booking.currency,
            )
        except Exception as e:
            # The payment stands even if the email does not go out
            logger.error(
                "Booking confirmation email failed",
                extra={"booking_id": str(booking.id), "error": str(e)},
                exc_info=True
            )
