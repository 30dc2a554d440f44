"""Booking, traveller, room guest and add-on model definitions."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

if TYPE_CHECKING:
    from .departure import TourDeparture
    from .room_option import RoomOption
    from .tour import Tour


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "PENDING"
    PAID = "PAID"
    DEPOSIT_PAID = "DEPOSIT_PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentType(str, Enum):
    """How much of the total is charged up front."""
    FULL_PAYMENT = "FULL_PAYMENT"
    DEPOSIT = "DEPOSIT"


# Booking statuses whose travellers occupy departure spaces
SPACE_HOLDING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class Booking(Base):
    """Booking entity created when a payment order is opened for a checkout."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_number: Mapped[str] = mapped_column(String(16), nullable=False, unique=True, index=True)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    departure_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tour_departures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    room_option_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("room_options.id", ondelete="SET NULL"),
        nullable=True
    )
    checkout_session_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Identity provider subject of the buyer
    customer_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    num_guests: Mapped[int] = mapped_column(Integer, nullable=False)

    # Amounts in minor units of ``currency``
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_due_now: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_paid: Mapped[int | None] = mapped_column(Integer, nullable=True)
    balance_due: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    donation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentType.FULL_PAYMENT
    )

    # Payment processor references
    payment_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True, index=True)
    payment_capture_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Set while a capture call is in flight with the processor
    capture_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Spaces taken by a PENDING booking are released after this instant
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    emergency_contact: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    insurance_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    insurance_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    updates_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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
        CheckConstraint("num_guests > 0", name="ck_booking_num_guests_positive"),
        CheckConstraint("total_price >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("amount_due_now >= 0", name="ck_booking_due_now_non_negative"),
        CheckConstraint("amount_due_now <= total_price", name="ck_booking_due_now_lte_total"),
        CheckConstraint("balance_due >= 0", name="ck_booking_balance_non_negative"),
        CheckConstraint("length(customer_ref) > 0", name="ck_booking_customer_ref_not_empty"),
    )

    tour: Mapped["Tour"] = relationship("Tour")
    departure: Mapped["TourDeparture"] = relationship("TourDeparture", back_populates="bookings")
    room_option: Mapped["RoomOption | None"] = relationship("RoomOption")
    travelers: Mapped[list["BookingTraveler"]] = relationship(
        "BookingTraveler",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingTraveler.position"
    )
    room_guests: Mapped[list["BookingRoomGuest"]] = relationship(
        "BookingRoomGuest",
        back_populates="booking",
        cascade="all, delete-orphan"
    )
    add_ons: Mapped[list["BookingAddOn"]] = relationship(
        "BookingAddOn",
        back_populates="booking",
        cascade="all, delete-orphan"
    )

    @property
    def holds_spaces(self) -> bool:
        return self.status in SPACE_HOLDING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, number='{self.booking_number}', status={self.status}, "
            f"payment_status={self.payment_status}, total={self.total_price} {self.currency})>"
        )


class BookingTraveler(Base):
    """A person travelling on a booking."""

    __tablename__ = "booking_travelers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(16), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    nationality: Mapped[str | None] = mapped_column(String(64), nullable=True)
    passport_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    is_lead_guest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="travelers")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class BookingRoomGuest(Base):
    """Room assignment for one traveller on a booking."""

    __tablename__ = "booking_room_guests"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_option_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("room_options.id", ondelete="SET NULL"),
        nullable=True
    )
    room_type: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    share_with: Mapped[str | None] = mapped_column(String(255), nullable=True)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="room_guests")


class BookingAddOn(Base):
    """Charged trip extra on a booking, priced at the time of ordering."""

    __tablename__ = "booking_add_ons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    trip_extra_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("trip_extras.id", ondelete="SET NULL"),
        nullable=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_booking_add_on_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_booking_add_on_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="add_ons")
