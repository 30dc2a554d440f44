"""Tour departure model definition."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

if TYPE_CHECKING:
    from .booking import Booking
    from .tour import Tour


class DepartureStatus(str, Enum):
    """Departure availability status."""
    AVAILABLE = "AVAILABLE"
    FILLING_FAST = "FILLING_FAST"
    SOLD_OUT = "SOLD_OUT"
    CANCELLED = "CANCELLED"


BOOKABLE_STATUSES = (DepartureStatus.AVAILABLE, DepartureStatus.FILLING_FAST)


class TourDeparture(Base):
    """A scheduled instance of a tour with its own dates, price and capacity."""

    __tablename__ = "tour_departures"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    departure_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Per-traveller prices in minor units; null price falls back to tour.price_from
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discounted_price: Mapped[int | None] = mapped_column(Integer, nullable=True)

    available_spaces: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[DepartureStatus] = mapped_column(
        String(20),
        nullable=False,
        default=DepartureStatus.AVAILABLE,
        index=True
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
        CheckConstraint("available_spaces >= 0", name="ck_departure_spaces_non_negative"),
        CheckConstraint("end_date >= departure_date", name="ck_departure_end_after_start"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_departure_price_non_negative"),
        CheckConstraint(
            "discounted_price IS NULL OR discounted_price >= 0",
            name="ck_departure_discounted_price_non_negative"
        ),
    )

    tour: Mapped["Tour"] = relationship("Tour", back_populates="departures")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="departure")

    def is_bookable(self, travelers: int) -> bool:
        """Whether this departure can take ``travelers`` more people."""
        return self.status in BOOKABLE_STATUSES and self.available_spaces >= travelers

    def __repr__(self) -> str:
        return (
            f"<TourDeparture(id={self.id}, tour_id={self.tour_id}, "
            f"departure_date={self.departure_date}, spaces={self.available_spaces}, status={self.status})>"
        )
