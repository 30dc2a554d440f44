"""Room option router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.room_option import (
    CreateRoomOptionRequest,
    DeleteRoomOptionRequest,
    ListRoomOptionsRequest,
    ListRoomOptionsResponse,
    RoomOption,
    UpdateRoomOptionRequest,
)
from ..services.room_option_service import RoomOptionService
from .converters import convert_room_option

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/room-option", tags=["room-option"])


@router.post("/create", response_model=RoomOption)
async def create_room_option(
    request: CreateRoomOptionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Add a room option to a tour. A new default replaces the previous one."""
    room_option_service = RoomOptionService(db)

    try:
        room_option = await room_option_service.create_room_option(request)
        return JSONResponse(status_code=200, content=convert_room_option(room_option).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in room option creation",
            extra={"tour_id": request.tour_id, "room_type": request.room_type, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/update", response_model=RoomOption)
async def update_room_option(
    request: UpdateRoomOptionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    room_option_service = RoomOptionService(db)

    try:
        room_option = await room_option_service.update_room_option(request)
        return JSONResponse(status_code=200, content=convert_room_option(room_option).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in room option update",
            extra={"room_option_id": request.room_option_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/delete")
async def delete_room_option(
    request: DeleteRoomOptionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    room_option_service = RoomOptionService(db)

    try:
        await room_option_service.delete_room_option(request.room_option_id)
        return JSONResponse(status_code=200, content={"deleted": True, "room_option_id": request.room_option_id})

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in room option deletion",
            extra={"room_option_id": request.room_option_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListRoomOptionsResponse)
async def list_room_options(
    request: ListRoomOptionsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List a tour's room options, default first."""
    room_option_service = RoomOptionService(db)

    try:
        room_options = await room_option_service.list_room_options_for_tour(request.tour_id)
        response_data = ListRoomOptionsResponse(items=[convert_room_option(option) for option in room_options])
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing room options",
            extra={"tour_id": request.tour_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
