"""Checkout wizard Pydantic schemas: per-step forms, requests and responses."""

from datetime import date, datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.database import utcnow
from ..models.booking import PaymentType
from ..models.checkout import CheckoutStatus
from .common import CURRENCY_PATTERN

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CheckoutStep(IntEnum):
    """Wizard steps in the order they are completed."""
    DATE_SELECTION = 1
    ROOM_CONFIGURATION = 2
    TRAVELLER_DETAILS = 3
    TRIP_EXTRAS = 4
    PAYMENT = 5


FIRST_STEP = CheckoutStep.DATE_SELECTION
LAST_STEP = CheckoutStep.PAYMENT


# Step forms

class DateSelectionForm(BaseModel):
    """Step 1: departure and party size."""

    departure_id: str = Field(..., min_length=1, description="Chosen departure")
    number_of_travelers: int = Field(..., ge=1, le=100, description="Party size")


class RoomConfigurationForm(BaseModel):
    """Step 2: room option and optional share-with notes per traveller."""

    room_option_id: str = Field(..., min_length=1, description="Chosen room option")
    roommates: list[Optional[str]] = Field(default_factory=list, description="Who each traveller shares with")


class TravellerForm(BaseModel):
    """One traveller on the booking."""

    title: str = Field(..., min_length=1, max_length=16, description="Mr, Mrs, Ms, Dr...")
    first_name: str = Field(..., min_length=2, max_length=100, description="First name")
    middle_name: Optional[str] = Field(None, max_length=100, description="Middle name")
    last_name: str = Field(..., min_length=2, max_length=100, description="Last name")
    date_of_birth: date = Field(..., description="Date of birth")
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="Email address")
    phone: str = Field(..., min_length=5, max_length=32, description="Phone number")
    nationality: Optional[str] = Field(None, max_length=64, description="Nationality")
    passport_no: Optional[str] = Field(None, max_length=32, description="Passport number")
    address: str = Field(..., min_length=5, max_length=1000, description="Postal address")
    is_lead_guest: bool = Field(False, description="Lead traveller for the booking")

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date) -> date:
        if v >= utcnow().date():
            raise ValueError("Date of birth must be in the past")
        return v


class EmergencyContact(BaseModel):
    """Who to call if something goes wrong on the trip."""

    name: str = Field(..., min_length=2, max_length=255, description="Contact name")
    phone: str = Field(..., min_length=5, max_length=32, description="Contact phone")
    relationship: str = Field(..., min_length=2, max_length=64, description="Relationship to the travellers")


class TravellerDetailsForm(BaseModel):
    """Step 3: travellers, emergency contact and special requests."""

    travelers: list[TravellerForm] = Field(..., min_length=1, description="One entry per traveller")
    emergency_contact: EmergencyContact = Field(..., description="Emergency contact")
    special_requests: Optional[str] = Field(None, max_length=2000, description="Dietary or other requests")


class AddOnSelection(BaseModel):
    """Requested quantity of a trip extra."""

    id: str = Field(..., min_length=1, description="Trip extra ID")
    quantity: int = Field(..., ge=0, le=100, description="Quantity; 0 removes the line")


class TripExtrasForm(BaseModel):
    """Step 4: add-ons, insurance and donation."""

    add_ons: list[AddOnSelection] = Field(default_factory=list, description="Selected trip extras")
    insurance_required: bool = Field(False, description="Traveller wants insurance")
    insurance_details: Optional[str] = Field(None, max_length=2000, description="Insurance notes")
    donation: int = Field(0, ge=0, description="Donation in minor units")


class PaymentForm(BaseModel):
    """Step 5: payment schedule and terms acceptance."""

    payment_type: PaymentType = Field(..., description="Pay in full or pay a deposit")
    agree_terms: bool = Field(..., description="Accepted the booking terms")
    read_guidelines: bool = Field(..., description="Read the travel guidelines")
    updates_consent: bool = Field(False, description="Opted in to updates")

    @field_validator("agree_terms")
    @classmethod
    def validate_agree_terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must agree to the terms and conditions")
        return v

    @field_validator("read_guidelines")
    @classmethod
    def validate_read_guidelines(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must confirm you have read the travel guidelines")
        return v


STEP_FORMS: dict[CheckoutStep, type[BaseModel]] = {
    CheckoutStep.DATE_SELECTION: DateSelectionForm,
    CheckoutStep.ROOM_CONFIGURATION: RoomConfigurationForm,
    CheckoutStep.TRAVELLER_DETAILS: TravellerDetailsForm,
    CheckoutStep.TRIP_EXTRAS: TripExtrasForm,
    CheckoutStep.PAYMENT: PaymentForm,
}


# Requests

class StartCheckoutRequest(BaseModel):
    """Request schema for starting a checkout."""

    tour_id: str = Field(..., description="Tour being booked")


class CheckoutSessionRequest(BaseModel):
    """Request schema addressing an existing checkout session."""

    session_id: str = Field(..., description="Checkout session ID")


class SubmitStepRequest(BaseModel):
    """Request schema for submitting one wizard step."""

    session_id: str = Field(..., description="Checkout session ID")
    step: CheckoutStep = Field(..., description="Step number being submitted (1-5)")
    data: dict[str, Any] = Field(..., description="Form data for the step")


class QuoteRequest(BaseModel):
    """Request schema for pricing a checkout session."""

    session_id: str = Field(..., description="Checkout session ID")
    display_currency: Optional[str] = Field(None, pattern=CURRENCY_PATTERN, description="Currency to show an estimate in")


# Responses

class PriceLine(BaseModel):
    """One line of a price breakdown."""

    label: str = Field(..., description="What the line charges for")
    unit_price: int = Field(..., description="Unit price in minor units")
    quantity: int = Field(..., description="Quantity charged")
    amount: int = Field(..., description="unit_price x quantity")


class PriceBreakdown(BaseModel):
    """Itemised price for a booking."""

    currency: str = Field(..., description="Charge currency")
    trip: PriceLine = Field(..., description="Base trip price")
    room: Optional[PriceLine] = Field(None, description="Room supplement")
    extras: list[PriceLine] = Field(default_factory=list, description="Charged trip extras")
    donation: int = Field(0, description="Donation in minor units")
    total: int = Field(..., description="Total in minor units")
    payment_type: PaymentType = Field(..., description="Payment schedule")
    amount_due_now: int = Field(..., description="Charged at capture")
    balance_due: int = Field(..., description="Owed after capture")
    display_currency: Optional[str] = Field(None, description="Estimate currency")
    exchange_rate: Optional[float] = Field(None, description="Rate applied for the estimate")
    display_total: Optional[int] = Field(None, description="Estimated total in display currency minor units")


class CheckoutSession(BaseModel):
    """Checkout session response schema."""

    id: str = Field(..., description="Checkout session ID")
    tour_id: str = Field(..., description="Tour being booked")
    current_step: CheckoutStep = Field(..., description="Step the buyer is on")
    current_step_name: str = Field(..., description="Name of the current step")
    max_step_reached: int = Field(..., description="Furthest step visited")
    status: CheckoutStatus = Field(..., description="Session status")
    steps: dict[str, Any] = Field(..., description="Saved form data keyed by step name")
    booking_id: Optional[str] = Field(None, description="Booking created from this session")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last change (ISO 8601)")
