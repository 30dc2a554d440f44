"""One-time passcode model for the manage-booking lookup."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class BookingOtp(Base):
    """Hashed one-time code issued to a booking's lead traveller."""

    __tablename__ = "booking_otps"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    # SHA-256 hex digest of the code; the code itself is never stored
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("attempts >= 0", name="ck_booking_otp_attempts_non_negative"),
        CheckConstraint("length(code_hash) = 64", name="ck_booking_otp_hash_length"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingOtp(id={self.id}, booking_id={self.booking_id}, "
            f"attempts={self.attempts}, expires_at={self.expires_at})>"
        )
