"""Tour and trip extra model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

if TYPE_CHECKING:
    from .departure import TourDeparture
    from .room_option import RoomOption


class TripExtraType(str, Enum):
    """Trip extra categories."""
    KITTY = "KITTY"
    OPTIONAL_ACTIVITY = "OPTIONAL_ACTIVITY"
    OTHER = "OTHER"


class Tour(Base):
    """Tour entity representing a bookable trip in the catalog."""

    __tablename__ = "tours"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    start_location: Mapped[str] = mapped_column(String(255), nullable=False)
    end_location: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False, default=16)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Base price per traveller in minor units
    price_from: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

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
        CheckConstraint("duration_days > 0", name="ck_tour_duration_positive"),
        CheckConstraint("max_group_size > 0", name="ck_tour_group_size_positive"),
        CheckConstraint("price_from >= 0", name="ck_tour_price_from_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_tour_currency_length"),
    )

    departures: Mapped[list["TourDeparture"]] = relationship(
        "TourDeparture",
        back_populates="tour",
        cascade="all, delete-orphan"
    )
    room_options: Mapped[list["RoomOption"]] = relationship(
        "RoomOption",
        back_populates="tour",
        cascade="all, delete-orphan"
    )
    trip_extras: Mapped[list["TripExtra"]] = relationship(
        "TripExtra",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TripExtra.name"
    )

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, code='{self.code}', slug='{self.slug}')>"


class TripExtra(Base):
    """Add-on offered with a tour: kitty, optional activity, or other extra."""

    __tablename__ = "trip_extras"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    type: Mapped[TripExtraType] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Unit price in minor units; null means free
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("price IS NULL OR price >= 0", name="ck_trip_extra_price_non_negative"),
    )

    tour: Mapped["Tour"] = relationship("Tour", back_populates="trip_extras")

    def __repr__(self) -> str:
        return f"<TripExtra(id={self.id}, type={self.type}, name='{self.name}', price={self.price})>"
