"""Checkout session model definition."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class CheckoutStatus(str, Enum):
    """Checkout session lifecycle."""
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    ORDERED = "ORDERED"


class CheckoutSession(Base):
    """Persisted checkout wizard: per-step form data plus the current step."""

    __tablename__ = "checkout_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    customer_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Highest step the buyer has reached; earlier steps may be re-edited
    max_step_reached: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Validated step payloads keyed by step number as a string
    step_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[CheckoutStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CheckoutStatus.IN_PROGRESS,
        index=True
    )
    booking_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("current_step >= 1 AND current_step <= 5", name="ck_checkout_step_range"),
        CheckConstraint("max_step_reached >= current_step", name="ck_checkout_max_step_gte_current"),
    )

    def __repr__(self) -> str:
        return (
            f"<CheckoutSession(id={self.id}, tour_id={self.tour_id}, "
            f"step={self.current_step}, status={self.status})>"
        )
