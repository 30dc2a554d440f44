"""Unit tests for outbound email."""

import pytest

from tourshop.services import notification_service as notification_module
from tourshop.services.notification_service import NotificationService


class RecordingSMTP:
    """Stands in for smtplib.SMTP and keeps what it was asked to send."""

    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def send_message(self, message):
        RecordingSMTP.sent.append((self.host, self.port, message))


@pytest.mark.asyncio
async def test_console_backend_keeps_outbox(notifications):
    await notifications.send("ana@example.com", "Hello", "Body text")

    assert len(notifications.outbox) == 1
    message = notifications.outbox[0]
    assert (message.to, message.subject, message.body) == ("ana@example.com", "Hello", "Body text")


@pytest.mark.asyncio
async def test_smtp_backend_delivers_message(monkeypatch):
    RecordingSMTP.sent = []
    monkeypatch.setattr(notification_module.smtplib, "SMTP", RecordingSMTP)
    service = NotificationService(
        backend="smtp",
        smtp_host="mail.test",
        smtp_port=2525,
        mail_from="bookings@tourshop.test",
    )

    await service.send("ana@example.com", "Hello", "Body text")

    host, port, message = RecordingSMTP.sent[0]
    assert (host, port) == ("mail.test", 2525)
    assert message["From"] == "bookings@tourshop.test"
    assert message["To"] == "ana@example.com"
    assert message["Subject"] == "Hello"
    assert message.get_content().strip() == "Body text"
    assert len(service.outbox) == 0


@pytest.mark.asyncio
async def test_otp_email_names_booking_and_expiry(notifications):
    await notifications.send_otp("ana@example.com", "BK-123456", "042917", ttl_minutes=10)

    message = notifications.outbox[-1]
    assert "BK-123456" in message.subject
    assert "code is 042917" in message.body
    assert "10 minutes" in message.body


@pytest.mark.asyncio
async def test_confirmation_shows_balance_only_when_owed(notifications):
    await notifications.send_booking_confirmation(
        "ana@example.com", "BK-000001", "South Island Explorer", "2027-02-01", 323000, 0, "NZD"
    )
    await notifications.send_booking_confirmation(
        "ana@example.com", "BK-000002", "South Island Explorer", "2027-02-01", 40000, 283005, "NZD"
    )

    paid_in_full, deposit = notifications.outbox
    assert "Paid: 3230.00 NZD" in paid_in_full.body
    assert "Balance due" not in paid_in_full.body
    assert "Paid: 400.00 NZD" in deposit.body
    assert "Balance due before departure: 2830.05 NZD" in deposit.body
