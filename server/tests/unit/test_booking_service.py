"""Unit tests for booking lookups and admin lifecycle changes."""

from uuid import uuid4

import pytest

from conftest import CUSTOMER_REF
from tourshop.core.exceptions import ConflictError, NotFoundError
from tourshop.models.booking import BookingStatus, PaymentStatus
from tourshop.services.booking_service import BookingService
from tourshop.services.departure_service import DepartureService
from tourshop.services.payment_service import PaymentService


async def spaces_left(db, departure_id) -> int:
    departure = await DepartureService(db).get_departure_by_id(departure_id)
    return departure.available_spaces


@pytest.mark.asyncio
async def test_lookups(test_session, pending_booking):
    booking = await pending_booking()
    service = BookingService(test_session)

    by_number = await service.get_booking_by_number(booking.booking_number)
    assert by_number.id == booking.id
    assert by_number.tour.code == "SIE12"
    assert await service.get_booking_by_number("BK-000000") is None

    mine = await service.get_customer_booking(str(booking.id), CUSTOMER_REF)
    assert mine.id == booking.id
    with pytest.raises(NotFoundError):
        await service.get_customer_booking(str(booking.id), "someone-else")
    with pytest.raises(NotFoundError):
        await service.get_booking_or_raise(uuid4())


@pytest.mark.asyncio
async def test_confirming_pending_booking_stops_expiry(test_session, pending_booking, sample_departure):
    booking = await pending_booking()

    updated = await BookingService(test_session).update_booking_status(str(booking.id), "CONFIRMED")

    assert updated.status == BookingStatus.CONFIRMED
    assert updated.expires_at is None
    assert await spaces_left(test_session, sample_departure.id) == 8


@pytest.mark.asyncio
async def test_cancelling_pending_booking_releases_spaces(test_session, pending_booking, sample_departure):
    booking = await pending_booking()

    updated = await BookingService(test_session).update_booking_status(str(booking.id), "CANCELLED")

    assert updated.status == BookingStatus.CANCELLED
    assert updated.payment_status == PaymentStatus.CANCELLED
    assert await spaces_left(test_session, sample_departure.id) == 10


@pytest.mark.asyncio
async def test_cancelling_paid_booking_keeps_payment_status(
    test_session, pending_booking, sample_departure, gateway
):
    booking = await pending_booking()
    await PaymentService(test_session, gateway).capture_order(
        str(booking.id), booking.payment_order_id, CUSTOMER_REF
    )

    updated = await BookingService(test_session).update_booking_status(str(booking.id), "CANCELLED")

    assert updated.status == BookingStatus.CANCELLED
    assert updated.payment_status == PaymentStatus.PAID
    assert await spaces_left(test_session, sample_departure.id) == 10


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(test_session, pending_booking):
    booking = await pending_booking()

    updated = await BookingService(test_session).update_booking_status(str(booking.id), "PENDING")

    assert updated.status == BookingStatus.PENDING
    assert updated.expires_at is not None


@pytest.mark.asyncio
async def test_terminal_booking_cannot_be_reactivated(test_session, pending_booking, sample_departure):
    booking = await pending_booking()
    service = BookingService(test_session)
    await service.update_booking_status(str(booking.id), "CANCELLED")

    with pytest.raises(ConflictError) as exc_info:
        await service.update_booking_status(str(booking.id), "CONFIRMED")

    assert exc_info.value.problem_details["conflicting_resource"]["status"] == "CANCELLED"
    assert await spaces_left(test_session, sample_departure.id) == 10


@pytest.mark.asyncio
async def test_recording_offline_payments(test_session, pending_booking):
    booking = await pending_booking(payment_type="DEPOSIT")
    service = BookingService(test_session)

    deposit = await service.update_payment_status(str(booking.id), "DEPOSIT_PAID")
    assert deposit.payment_status == PaymentStatus.DEPOSIT_PAID
    assert deposit.deposit_paid == 40000
    assert deposit.balance_due == 283000
    assert deposit.paid_at is not None

    paid = await service.update_payment_status(str(booking.id), "PAID")
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.balance_due == 0
    assert paid.paid_at == deposit.paid_at


@pytest.mark.asyncio
async def test_update_unknown_booking(test_session):
    with pytest.raises(NotFoundError):
        await BookingService(test_session).update_payment_status(str(uuid4()), "PAID")
