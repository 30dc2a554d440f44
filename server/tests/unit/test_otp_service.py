"""Unit tests for manage-booking one-time codes."""

import re
from datetime import timedelta

import pytest
from sqlalchemy import select

from tourshop.core.config import settings
from tourshop.core.database import utcnow
from tourshop.core.exceptions import NotFoundError, OtpAttemptsExceededError, OtpExpiredError, OtpInvalidError
from tourshop.models.otp import BookingOtp
from tourshop.services.otp_service import OtpService, generate_code, hash_code


def sent_code(notifications) -> str:
    return re.search(r"code is (\d{6})", notifications.outbox[-1].body).group(1)


def test_generate_code_is_six_digits():
    codes = {generate_code() for _ in range(50)}

    assert all(re.fullmatch(r"\d{6}", code) for code in codes)
    assert len(codes) > 1


def test_hash_code_is_stable_hex():
    assert hash_code("123456") == hash_code("123456")
    assert hash_code("123456") != hash_code("654321")
    assert len(hash_code("000000")) == 64


@pytest.mark.asyncio
async def test_request_and_verify(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)

    expires_in = await service.request_otp(booking.booking_number, "Casey@Example.com")

    assert expires_in == settings.otp_ttl_minutes * 60
    assert notifications.outbox[-1].to == "Casey@Example.com"
    assert booking.booking_number in notifications.outbox[-1].subject

    verified = await service.verify_otp(booking.booking_number, "casey@example.com", sent_code(notifications))
    assert verified.id == booking.id
    assert len(verified.travelers) == 2


@pytest.mark.asyncio
async def test_code_is_not_stored_in_clear(test_session, pending_booking, notifications):
    booking = await pending_booking()
    await OtpService(test_session, notifications).request_otp(booking.booking_number, "casey@example.com")

    record = (await test_session.execute(select(BookingOtp))).scalar_one()
    assert record.code_hash == hash_code(sent_code(notifications))


@pytest.mark.asyncio
async def test_unknown_booking_and_wrong_email_look_the_same(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)

    with pytest.raises(NotFoundError) as unknown:
        await service.request_otp("BK-000000", "casey@example.com")
    with pytest.raises(NotFoundError) as wrong_email:
        await service.request_otp(booking.booking_number, "jordan@example.com")

    assert unknown.value.detail == wrong_email.value.detail
    assert len(notifications.outbox) == 0


@pytest.mark.asyncio
async def test_code_is_single_use(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)
    await service.request_otp(booking.booking_number, "casey@example.com")
    code = sent_code(notifications)

    await service.verify_otp(booking.booking_number, "casey@example.com", code)

    with pytest.raises(OtpExpiredError):
        await service.verify_otp(booking.booking_number, "casey@example.com", code)


@pytest.mark.asyncio
async def test_new_request_replaces_old_code(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)
    await service.request_otp(booking.booking_number, "casey@example.com")
    old_code = sent_code(notifications)
    await service.request_otp(booking.booking_number, "casey@example.com")
    new_code = sent_code(notifications)

    if old_code != new_code:
        with pytest.raises(OtpInvalidError):
            await service.verify_otp(booking.booking_number, "casey@example.com", old_code)

    verified = await service.verify_otp(booking.booking_number, "casey@example.com", new_code)
    assert verified.id == booking.id


@pytest.mark.asyncio
async def test_expired_code(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)
    await service.request_otp(booking.booking_number, "casey@example.com")

    record = (await test_session.execute(select(BookingOtp))).scalar_one()
    record.expires_at = utcnow() - timedelta(seconds=1)
    await test_session.commit()

    with pytest.raises(OtpExpiredError) as exc_info:
        await service.verify_otp(booking.booking_number, "casey@example.com", sent_code(notifications))
    assert exc_info.value.status_code == 410


@pytest.mark.asyncio
async def test_wrong_guesses_lock_the_code(test_session, pending_booking, notifications):
    booking = await pending_booking()
    service = OtpService(test_session, notifications)
    await service.request_otp(booking.booking_number, "casey@example.com")
    code = sent_code(notifications)
    wrong = "000000" if code != "000000" else "111111"

    for attempt in range(1, settings.otp_max_attempts):
        with pytest.raises(OtpInvalidError) as exc_info:
            await service.verify_otp(booking.booking_number, "casey@example.com", wrong)
        assert exc_info.value.problem_details["attempts_left"] == settings.otp_max_attempts - attempt

    with pytest.raises(OtpAttemptsExceededError):
        await service.verify_otp(booking.booking_number, "casey@example.com", wrong)

    # Even the right code is refused once locked
    with pytest.raises(OtpAttemptsExceededError) as exc_info:
        await service.verify_otp(booking.booking_number, "casey@example.com", code)
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_verify_without_request(test_session, pending_booking):
    booking = await pending_booking()

    with pytest.raises(OtpExpiredError):
        await OtpService(test_session).verify_otp(booking.booking_number, "casey@example.com", "123456")
