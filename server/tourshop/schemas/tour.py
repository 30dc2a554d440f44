"""Tour-related Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.tour import TripExtraType
from .common import CURRENCY_PATTERN, Money, PaginatedResponse


class TripExtraInput(BaseModel):
    """Trip extra supplied inline when creating a tour."""

    type: TripExtraType = Field(..., description="Extra category")
    name: str = Field(..., min_length=1, max_length=255, description="Extra name")
    price: Optional[int] = Field(None, ge=0, description="Unit price in minor units; omit for free extras")
    notes: Optional[str] = Field(None, max_length=2000, description="Free-text notes")


class CreateTourRequest(BaseModel):
    """Request schema for creating a tour."""

    code: str = Field(..., min_length=1, max_length=32, description="Short tour code")
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    title: str = Field(..., min_length=1, max_length=255, description="Tour title")
    start_location: str = Field(..., min_length=1, max_length=255, description="Where the tour starts")
    end_location: str = Field(..., min_length=1, max_length=255, description="Where the tour ends")
    duration_days: int = Field(..., ge=1, le=365, description="Tour length in days")
    max_group_size: int = Field(16, ge=1, le=500, description="Maximum travellers per departure")
    price_from: int = Field(..., ge=0, description="Base price per traveller in minor units")
    currency: str = Field("USD", pattern=CURRENCY_PATTERN, description="ISO 4217 currency code")
    overview: Optional[str] = Field(None, max_length=10000, description="Tour overview")
    trip_extras: list[TripExtraInput] = Field(default_factory=list, description="Extras offered with the tour")


class GetTourRequest(BaseModel):
    """Request schema for getting a tour by id or slug."""

    tour_id: Optional[str] = Field(None, description="Tour ID")
    slug: Optional[str] = Field(None, description="Tour slug")

    @model_validator(mode="after")
    def check_one_identifier(self) -> "GetTourRequest":
        if (self.tour_id is None) == (self.slug is None):
            raise ValueError("Exactly one of tour_id or slug must be provided")
        return self


class TourSort(str, Enum):
    """Orderings offered by tour search."""
    RELEVANCE = "relevance"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    DURATION_ASC = "duration-asc"
    DURATION_DESC = "duration-desc"


class ListToursRequest(BaseModel):
    """Request schema for listing and searching tours."""

    cursor: Optional[str] = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")
    keyword: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Matched against code, title, overview and start/end locations"
    )
    min_price: Optional[int] = Field(None, ge=0, description="Lowest price_from in minor units")
    max_price: Optional[int] = Field(None, ge=0, description="Highest price_from in minor units")
    min_duration: Optional[int] = Field(None, ge=1, description="Shortest tour in days")
    max_duration: Optional[int] = Field(None, ge=1, description="Longest tour in days")
    sort: TourSort = Field(TourSort.RELEVANCE, description="Result ordering")

    @model_validator(mode="after")
    def check_ranges(self) -> "ListToursRequest":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        if self.min_duration is not None and self.max_duration is not None and self.min_duration > self.max_duration:
            raise ValueError("min_duration must not exceed max_duration")
        return self


class UpdateTourRequest(BaseModel):
    """
    Request schema for updating a tour.

    Only fields present in the body are changed. Sending ``trip_extras``
    replaces the tour's extras with the given list.
    """

    tour_id: str = Field(..., description="Tour to update")
    code: Optional[str] = Field(None, min_length=1, max_length=32, description="Short tour code")
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    title: Optional[str] = Field(None, min_length=1, max_length=255, description="Tour title")
    start_location: Optional[str] = Field(None, min_length=1, max_length=255, description="Where the tour starts")
    end_location: Optional[str] = Field(None, min_length=1, max_length=255, description="Where the tour ends")
    duration_days: Optional[int] = Field(None, ge=1, le=365, description="Tour length in days")
    max_group_size: Optional[int] = Field(None, ge=1, le=500, description="Maximum travellers per departure")
    price_from: Optional[int] = Field(None, ge=0, description="Base price per traveller in minor units")
    currency: Optional[str] = Field(None, pattern=CURRENCY_PATTERN, description="ISO 4217 currency code")
    overview: Optional[str] = Field(None, max_length=10000, description="Tour overview; null clears it")
    trip_extras: Optional[list[TripExtraInput]] = Field(None, description="Replacement list of extras")


class DeleteTourRequest(BaseModel):
    """Request schema for deleting a tour."""

    tour_id: str = Field(..., description="Tour to delete")


class TripExtra(BaseModel):
    """Trip extra response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique extra ID")
    type: TripExtraType = Field(..., description="Extra category")
    name: str = Field(..., description="Extra name")
    price: Optional[int] = Field(None, description="Unit price in minor units")
    notes: Optional[str] = Field(None, description="Free-text notes")


class Tour(BaseModel):
    """Tour response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique tour ID")
    code: str = Field(..., description="Short tour code")
    slug: str = Field(..., description="URL-friendly slug")
    title: str = Field(..., description="Tour title")
    start_location: str = Field(..., description="Where the tour starts")
    end_location: str = Field(..., description="Where the tour ends")
    duration_days: int = Field(..., description="Tour length in days")
    max_group_size: int = Field(..., description="Maximum travellers per departure")
    price_from: Money = Field(..., description="Base price per traveller")
    overview: Optional[str] = Field(None, description="Tour overview")
    trip_extras: list[TripExtra] = Field(default_factory=list, description="Extras offered with the tour")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")


class ListToursResponse(PaginatedResponse):
    """Response schema for tour listing."""

    items: list[Tour] = Field(..., description="Tours on this page")
