"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus, PaymentStatus, PaymentType


class BookingTraveler(BaseModel):
    """Traveller on a booking."""

    title: str = Field(..., description="Title")
    first_name: str = Field(..., description="First name")
    middle_name: Optional[str] = Field(None, description="Middle name")
    last_name: str = Field(..., description="Last name")
    date_of_birth: date = Field(..., description="Date of birth")
    email: str = Field(..., description="Email address")
    phone: str = Field(..., description="Phone number")
    nationality: Optional[str] = Field(None, description="Nationality")
    passport_no: Optional[str] = Field(None, description="Passport number")
    address: str = Field(..., description="Postal address")
    is_lead_guest: bool = Field(..., description="Lead traveller")


class BookingRoomGuest(BaseModel):
    """Room assignment on a booking."""

    room_type: str = Field(..., description="Room type")
    guest_name: str = Field(..., description="Traveller in the room")
    share_with: Optional[str] = Field(None, description="Requested roommate")


class BookingAddOn(BaseModel):
    """Charged trip extra on a booking."""

    type: str = Field(..., description="Extra category")
    name: str = Field(..., description="Extra name")
    unit_price: int = Field(..., description="Unit price in minor units")
    quantity: int = Field(..., description="Quantity charged")


class Booking(BaseModel):
    """Booking summary response schema."""

    id: str = Field(..., description="Unique booking ID")
    booking_number: str = Field(..., description="Human-facing booking number, BK-NNNNNN")
    tour_id: str = Field(..., description="Booked tour")
    departure_id: str = Field(..., description="Booked departure")
    start_date: date = Field(..., description="First day of travel")
    end_date: date = Field(..., description="Last day of travel")
    num_guests: int = Field(..., description="Number of travellers")
    status: BookingStatus = Field(..., description="Booking status")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    payment_type: PaymentType = Field(..., description="Payment schedule")
    total_price: int = Field(..., description="Total in minor units")
    amount_due_now: int = Field(..., description="Charged at capture")
    deposit_paid: Optional[int] = Field(None, description="Deposit captured")
    balance_due: int = Field(..., description="Still owed")
    currency: str = Field(..., description="Charge currency")
    payment_order_id: Optional[str] = Field(None, description="Payment processor order ID")
    paid_at: Optional[datetime] = Field(None, description="Capture time (ISO 8601)")
    expires_at: Optional[datetime] = Field(None, description="Unpaid booking release time (ISO 8601)")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")


class BookingDetails(Booking):
    """Full booking view returned after OTP verification."""

    tour_title: str = Field(..., description="Tour title")
    tour_slug: str = Field(..., description="Tour slug")
    donation: int = Field(0, description="Donation in minor units")
    special_requests: Optional[str] = Field(None, description="Special requests")
    emergency_contact: Optional[dict[str, Any]] = Field(None, description="Emergency contact")
    insurance_required: bool = Field(False, description="Insurance requested")
    insurance_details: Optional[str] = Field(None, description="Insurance notes")
    travelers: list[BookingTraveler] = Field(default_factory=list, description="Travellers")
    room_guests: list[BookingRoomGuest] = Field(default_factory=list, description="Room assignments")
    add_ons: list[BookingAddOn] = Field(default_factory=list, description="Charged trip extras")
