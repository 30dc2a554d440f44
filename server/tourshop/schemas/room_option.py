"""Room option Pydantic schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateRoomOptionRequest(BaseModel):
    """Request schema for creating a room option."""

    tour_id: str = Field(..., description="Associated tour ID")
    room_type: str = Field(..., min_length=1, max_length=100, description="Room type, e.g. Twin Share")
    description: Optional[str] = Field(None, max_length=2000, description="Room description")
    price_add: int = Field(0, ge=0, description="Per-traveller supplement in minor units")
    is_default: bool = Field(False, description="Preselected option")


class UpdateRoomOptionRequest(BaseModel):
    """Request schema for updating a room option."""

    room_option_id: str = Field(..., description="Room option to update")
    room_type: Optional[str] = Field(None, min_length=1, max_length=100, description="Room type")
    description: Optional[str] = Field(None, max_length=2000, description="Room description")
    price_add: Optional[int] = Field(None, ge=0, description="Per-traveller supplement in minor units")
    is_default: Optional[bool] = Field(None, description="Preselected option")


class DeleteRoomOptionRequest(BaseModel):
    """Request schema for deleting a room option."""

    room_option_id: str = Field(..., description="Room option to delete")


class ListRoomOptionsRequest(BaseModel):
    """Request schema for listing a tour's room options."""

    tour_id: str = Field(..., description="Tour whose room options to list")


class RoomOption(BaseModel):
    """Room option response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique room option ID")
    tour_id: str = Field(..., description="Associated tour ID")
    room_type: str = Field(..., description="Room type")
    description: Optional[str] = Field(None, description="Room description")
    price_add: int = Field(..., description="Per-traveller supplement in minor units")
    is_default: bool = Field(..., description="Preselected option")


class ListRoomOptionsResponse(BaseModel):
    """Response schema for room option listing."""

    items: list[RoomOption] = Field(..., description="Room options, default first")
