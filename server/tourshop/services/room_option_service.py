"""Room option service for per-tour accommodation choices."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import parse_resource_id
from ..core.exceptions import NotFoundError
from ..models.room_option import RoomOption
from ..schemas.room_option import CreateRoomOptionRequest, UpdateRoomOptionRequest
from .tour_service import TourService

logger = logging.getLogger(__name__)


class RoomOptionService:
    """Service for room option operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)

    async def create_room_option(self, request: CreateRoomOptionRequest) -> RoomOption:
        """
        Create a room option for a tour.

        Raises:
            NotFoundError: If tour not found
        """
        tour_id = parse_resource_id(request.tour_id, "tour")
        await self.tour_service.get_tour_by_id_or_raise(tour_id)

        if request.is_default:
            await self._clear_default(tour_id)

        room_option = RoomOption(
            tour_id=tour_id,
            room_type=request.room_type,
            description=request.description,
            price_add=request.price_add,
            is_default=request.is_default,
        )
        self.db.add(room_option)
        await self.db.commit()

        logger.info(
            "Room option created successfully",
            extra={
                "room_option_id": str(room_option.id),
                "tour_id": str(tour_id),
                "room_type": room_option.room_type,
                "is_default": room_option.is_default
            }
        )
        return room_option

    async def update_room_option(self, request: UpdateRoomOptionRequest) -> RoomOption:
        """
        Update the fields present in the request.

        Raises:
            NotFoundError: If room option not found
        """
        room_option = await self.get_room_option_or_raise(parse_resource_id(request.room_option_id, "room_option"))
        changes = request.model_dump(exclude_unset=True, exclude={"room_option_id"})

        if changes.get("is_default"):
            await self._clear_default(room_option.tour_id, keep=room_option.id)

        for field_name in ("room_type", "price_add", "is_default"):
            if changes.get(field_name) is not None:
                setattr(room_option, field_name, changes[field_name])
        if "description" in changes:
            room_option.description = changes["description"]

        await self.db.commit()

        logger.info(
            "Room option updated successfully",
            extra={"room_option_id": str(room_option.id), "changed_fields": sorted(changes)}
        )
        return room_option

    async def delete_room_option(self, room_option_id: str) -> None:
        """
        Delete a room option. Existing bookings keep their room type text.

        Raises:
            NotFoundError: If room option not found
        """
        room_option = await self.get_room_option_or_raise(parse_resource_id(room_option_id, "room_option"))
        await self.db.delete(room_option)
        await self.db.commit()

        logger.info("Room option deleted", extra={"room_option_id": str(room_option.id)})

    async def list_room_options_for_tour(self, tour_id: str) -> list[RoomOption]:
        """List a tour's room options with the default first."""
        tour_uuid = parse_resource_id(tour_id, "tour")
        await self.tour_service.get_tour_by_id_or_raise(tour_uuid)

        stmt = (
            select(RoomOption)
            .where(RoomOption.tour_id == tour_uuid)
            .order_by(RoomOption.is_default.desc(), RoomOption.price_add, RoomOption.room_type)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_room_option(self, room_option_id: UUID) -> Optional[RoomOption]:
        """Get room option by ID."""
        stmt = select(RoomOption).where(RoomOption.id == room_option_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_room_option_or_raise(self, room_option_id: UUID) -> RoomOption:
        """
        Get room option by ID or raise NotFoundError.

        Raises:
            NotFoundError: If room option not found
        """
        room_option = await self.get_room_option(room_option_id)
        if not room_option:
            logger.warning("Room option not found", extra={"room_option_id": str(room_option_id)})
            raise NotFoundError(resource_type="room_option", resource_id=str(room_option_id))
        return room_option

    async def _clear_default(self, tour_id: UUID, keep: Optional[UUID] = None) -> None:
        stmt = update(RoomOption).where(RoomOption.tour_id == tour_id, RoomOption.is_default.is_(True))
        if keep is not None:
            stmt = stmt.where(RoomOption.id != keep)
        await self.db.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))
