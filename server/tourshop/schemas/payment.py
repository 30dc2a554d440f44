"""Payment handshake Pydantic schemas."""

from pydantic import BaseModel, Field


class CreateOrderRequest(BaseModel):
    """Request schema for opening a payment order for a ready checkout."""

    session_id: str = Field(..., description="Checkout session to pay for")


class CreateOrderResponse(BaseModel):
    """Response schema for an opened payment order."""

    order_id: str = Field(..., description="Payment processor order ID")
    booking_id: str = Field(..., description="Pending booking ID")
    booking_number: str = Field(..., description="Booking number")
    amount: int = Field(..., description="Amount to be captured in minor units")
    currency: str = Field(..., description="Charge currency")


class CaptureOrderRequest(BaseModel):
    """Request schema for capturing an approved order."""

    order_id: str = Field(..., min_length=1, description="Payment processor order ID")
    booking_id: str = Field(..., description="Booking the order belongs to")


class CancelOrderRequest(BaseModel):
    """Request schema for abandoning an unpaid order."""

    booking_id: str = Field(..., description="Booking to cancel")
