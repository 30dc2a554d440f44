"""Departure router for departure management operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.departure import (
    CreateDepartureRequest,
    DeleteDepartureRequest,
    Departure,
    ListDeparturesRequest,
    ListDeparturesResponse,
    UpdateDepartureRequest,
)
from ..services.departure_service import DepartureService
from .converters import convert_departure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/departure", tags=["departure"])


@router.post("/create", response_model=Departure)
async def create_departure(
    request: CreateDepartureRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """
    Create a departure for a tour.

    Without an explicit status the availability status is derived from the
    number of spaces.
    """
    departure_service = DepartureService(db)

    try:
        departure = await departure_service.create_departure(request)
        response_data = convert_departure(departure, departure.tour.currency)

        logger.info(
            "Departure created successfully",
            extra={
                "departure_id": str(departure.id),
                "tour_id": request.tour_id,
                "departure_date": request.departure_date.isoformat(),
                "available_spaces": request.available_spaces
            }
        )

        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in departure creation",
            extra={
                "tour_id": request.tour_id,
                "departure_date": request.departure_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()


@router.post("/update", response_model=Departure)
async def update_departure(
    request: UpdateDepartureRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Change dates, prices, spaces or status of a departure."""
    departure_service = DepartureService(db)

    try:
        departure = await departure_service.update_departure(request)
        response_data = convert_departure(departure, departure.tour.currency)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in departure update",
            extra={"departure_id": request.departure_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/delete")
async def delete_departure(
    request: DeleteDepartureRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Delete a departure that has no bookings."""
    departure_service = DepartureService(db)

    try:
        await departure_service.delete_departure(request.departure_id)
        return JSONResponse(status_code=200, content={"deleted": True, "departure_id": request.departure_id})

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in departure deletion",
            extra={"departure_id": request.departure_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListDeparturesResponse)
async def list_departures(
    request: ListDeparturesRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """
    List a tour's departures by date.

    With ``bookable_only`` only departures that can take ``travelers`` more
    travellers are returned.
    """
    departure_service = DepartureService(db)

    try:
        departures = await departure_service.list_departures_for_tour(request)
        response_data = ListDeparturesResponse(
            items=[convert_departure(departure, departure.tour.currency) for departure in departures]
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing departures",
            extra={"tour_id": request.tour_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
