"""Admin booking management Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from .booking import Booking
from .checkout import EMAIL_PATTERN
from .common import Money


class RequestOtpRequest(BaseModel):
    """Request schema for sending a manage-booking code."""

    booking_number: str = Field(..., min_length=1, max_length=16, description="Booking number")
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="Lead traveller email")


class RequestOtpResponse(BaseModel):
    """Response schema after a code is sent."""

    sent: bool = Field(..., description="Whether a code was sent")
    expires_in_seconds: int = Field(..., description="Code lifetime")


class VerifyOtpRequest(BaseModel):
    """Request schema for exchanging a code for booking details."""

    booking_number: str = Field(..., min_length=1, max_length=16, description="Booking number")
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="Lead traveller email")
    otp: str = Field(..., pattern=r"^\d{6}$", description="Six-digit code")


class UpdateBookingStatusRequest(BaseModel):
    """Request schema for changing a booking status."""

    booking_id: str = Field(..., description="Booking to update")
    status: Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"] = Field(..., description="New status")


class UpdatePaymentStatusRequest(BaseModel):
    """Request schema for changing a booking payment status."""

    booking_id: str = Field(..., description="Booking to update")
    payment_status: Literal["PENDING", "PAID", "DEPOSIT_PAID", "REFUNDED", "FAILED"] = Field(
        ..., description="New payment status"
    )


class DashboardTotals(BaseModel):
    """Headline counts for the admin dashboard."""

    tours: int = Field(..., description="Tours in the catalog")
    departures: int = Field(..., description="Scheduled departures")
    bookings: int = Field(..., description="All bookings")
    pending_bookings: int = Field(..., description="Bookings awaiting payment")
    confirmed_bookings: int = Field(..., description="Confirmed bookings")
    customers: int = Field(..., description="Distinct customers")


class PopularTour(BaseModel):
    """Tour ranked by booking count."""

    tour_id: str = Field(..., description="Tour ID")
    title: str = Field(..., description="Tour title")
    slug: str = Field(..., description="Tour slug")
    booking_count: int = Field(..., description="Number of bookings")


class DashboardStats(BaseModel):
    """Admin dashboard response schema."""

    totals: DashboardTotals = Field(..., description="Headline counts")
    revenue: list[Money] = Field(..., description="Captured revenue per currency")
    recent_bookings: list[Booking] = Field(..., description="Five most recent bookings")
    popular_tours: list[PopularTour] = Field(..., description="Five most booked tours")
