"""Outbound email for manage-booking codes and booking confirmations."""

import asyncio
import logging
import smtplib
from collections import deque
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from ..core.config import settings
from ..payments.base import format_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    """A message handed to the mail backend."""

    to: str
    subject: str
    body: str


class NotificationService:
    """
    Sends email through the configured backend.

    The console backend writes messages to the log and keeps the most recent
    ones in ``outbox``; the smtp backend delivers them with smtplib on a
    worker thread.
    """

    def __init__(
        self,
        backend: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        mail_from: Optional[str] = None,
    ):
        self.backend = backend or settings.mail_backend
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.mail_from = mail_from or settings.mail_from
        self.outbox: deque[OutgoingEmail] = deque(maxlen=100)

    async def send(self, to: str, subject: str, body: str) -> None:
        message = OutgoingEmail(to=to, subject=subject, body=body)

        if self.backend == "smtp":
            await asyncio.to_thread(self._deliver_smtp, message)
        else:
            self.outbox.append(message)
            logger.info(
                "Email written to console backend",
                extra={"to": to, "subject": subject, "body": body}
            )

        logger.info("Email sent", extra={"to": to, "subject": subject, "backend": self.backend})

    def _deliver_smtp(self, message: OutgoingEmail) -> None:
        email = EmailMessage()
        email["From"] = self.mail_from
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as smtp:
            smtp.send_message(email)

    async def send_otp(self, to: str, booking_number: str, code: str, ttl_minutes: int) -> None:
        await self.send(
            to,
            f"Your verification code for booking {booking_number}",
            (
                f"Your verification code is {code}.\n\n"
                f"It expires in {ttl_minutes} minutes. If you did not ask to manage "
                f"booking {booking_number}, you can ignore this email."
            ),
        )

    async def send_booking_confirmation(
        self,
        to: str,
        booking_number: str,
        tour_title: str,
        start_date: str,
        amount_paid: int,
        balance_due: int,
        currency: str,
    ) -> None:
        lines = [
            f"Thank you for booking {tour_title}.",
            "",
            f"Booking number: {booking_number}",
            f"Departure: {start_date}",
            f"Paid: {format_amount(amount_paid)} {currency}",
        ]
        if balance_due:
            lines.append(f"Balance due before departure: {format_amount(balance_due)} {currency}")

        await self.send(to, f"Booking confirmed: {booking_number}", "\n".join(lines))


notification_service = NotificationService()
