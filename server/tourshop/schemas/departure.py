"""Departure-related Pydantic schemas."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.departure import DepartureStatus
from .common import Money


class CreateDepartureRequest(BaseModel):
    """Request schema for creating a departure."""

    tour_id: str = Field(..., description="Associated tour ID")
    departure_date: date = Field(..., description="First day of the departure")
    end_date: date = Field(..., description="Last day of the departure")
    price: Optional[int] = Field(None, ge=0, description="Per-traveller price in minor units; defaults to the tour price")
    discounted_price: Optional[int] = Field(None, ge=0, description="Per-traveller sale price in minor units")
    available_spaces: int = Field(..., ge=0, le=1000, description="Spaces open for booking")
    status: Optional[DepartureStatus] = Field(None, description="Initial status; derived from spaces when omitted")

    @model_validator(mode="after")
    def check_dates(self) -> "CreateDepartureRequest":
        if self.end_date < self.departure_date:
            raise ValueError("end_date must not be before departure_date")
        return self


class UpdateDepartureRequest(BaseModel):
    """
    Request schema for updating a departure.

    Only fields present in the body are changed; ``price`` and
    ``discounted_price`` may be sent as null to clear them.
    """

    departure_id: str = Field(..., description="Departure to update")
    departure_date: Optional[date] = Field(None, description="First day of the departure")
    end_date: Optional[date] = Field(None, description="Last day of the departure")
    price: Optional[int] = Field(None, ge=0, description="Per-traveller price in minor units")
    discounted_price: Optional[int] = Field(None, ge=0, description="Per-traveller sale price in minor units")
    available_spaces: Optional[int] = Field(None, ge=0, le=1000, description="Spaces open for booking")
    status: Optional[DepartureStatus] = Field(None, description="Set CANCELLED to withdraw the departure")


class DeleteDepartureRequest(BaseModel):
    """Request schema for deleting a departure."""

    departure_id: str = Field(..., description="Departure to delete")


class ListDeparturesRequest(BaseModel):
    """Request schema for listing a tour's departures."""

    tour_id: str = Field(..., description="Tour whose departures to list")
    date_from: Optional[date] = Field(None, description="Earliest departure date")
    date_to: Optional[date] = Field(None, description="Latest departure date")
    bookable_only: bool = Field(False, description="Only departures that can take ``travelers``")
    travelers: int = Field(1, ge=1, le=100, description="Party size used by ``bookable_only``")


class Departure(BaseModel):
    """Departure response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique departure ID")
    tour_id: str = Field(..., description="Associated tour ID")
    departure_date: date = Field(..., description="First day of the departure")
    end_date: date = Field(..., description="Last day of the departure")
    price: Optional[int] = Field(None, description="Per-traveller price in minor units")
    discounted_price: Optional[int] = Field(None, description="Per-traveller sale price in minor units")
    unit_price: Money = Field(..., description="Effective per-traveller price")
    available_spaces: int = Field(..., ge=0, description="Spaces open for booking")
    status: DepartureStatus = Field(..., description="Availability status")


class ListDeparturesResponse(BaseModel):
    """Response schema for departure listing."""

    items: list[Departure] = Field(..., description="Departures ordered by date")
