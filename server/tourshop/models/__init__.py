"""Models module exporting all database models."""

from .booking import (
    Booking,
    BookingAddOn,
    BookingRoomGuest,
    BookingStatus,
    BookingTraveler,
    PaymentStatus,
    PaymentType,
)
from .checkout import CheckoutSession, CheckoutStatus
from .departure import DepartureStatus, TourDeparture
from .idempotency import IdempotencyRecord
from .otp import BookingOtp
from .room_option import RoomOption
from .tour import Tour, TripExtra, TripExtraType

__all__ = [
    # Catalog
    "Tour",
    "TripExtra",
    "TripExtraType",
    "TourDeparture",
    "DepartureStatus",
    "RoomOption",

    # Checkout
    "CheckoutSession",
    "CheckoutStatus",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingTraveler",
    "BookingRoomGuest",
    "BookingAddOn",
    "PaymentStatus",
    "PaymentType",
    "BookingOtp",

    # Idempotency entity
    "IdempotencyRecord",
]
