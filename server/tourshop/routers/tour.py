"""Tour router for catalog operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import problem_responses
from ..schemas.tour import (
    CreateTourRequest,
    DeleteTourRequest,
    GetTourRequest,
    ListToursRequest,
    ListToursResponse,
    Tour,
    UpdateTourRequest,
)
from ..services.tour_service import TourService
from .converters import convert_tour

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tour", tags=["tour"])


@router.post("/create", response_model=Tour)
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """
    Create a tour with its trip extras.

    Slug and code are unique; reusing either is a conflict.
    """
    tour_service = TourService(db)

    try:
        tour = await tour_service.create_tour(request)
        response_data = convert_tour(tour)

        logger.info(
            "Tour created successfully",
            extra={"tour_id": str(tour.id), "slug": request.slug, "admin": user["user_id"]}
        )

        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour creation",
            extra={"slug": request.slug, "code": request.code, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/get", response_model=Tour)
async def get_tour(
    request: GetTourRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a tour by id or slug."""
    tour_service = TourService(db)

    try:
        tour = await tour_service.get_tour(tour_id=request.tour_id, slug=request.slug)
        return JSONResponse(status_code=200, content=convert_tour(tour).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error getting tour",
            extra={"tour_id": request.tour_id, "slug": request.slug, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListToursResponse)
async def list_tours(
    request: ListToursRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """
    Search tours with cursor pagination.

    Filters on keyword, price and duration; sorts by price or duration when asked.
    """
    tour_service = TourService(db)

    try:
        tours, next_cursor = await tour_service.list_tours(request)
        response_data = ListToursResponse(
            items=[convert_tour(tour) for tour in tours],
            next_cursor=next_cursor
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing tours",
            extra={"cursor": request.cursor, "limit": request.limit, "sort": request.sort.value, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/update", response_model=Tour, responses=problem_responses(404, 409, 422))
async def update_tour(
    request: UpdateTourRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Change details of a tour; ``trip_extras`` replaces the whole list."""
    tour_service = TourService(db)

    try:
        tour = await tour_service.update_tour(request)

        logger.info(
            "Tour updated successfully",
            extra={"tour_id": str(tour.id), "admin": user["user_id"]}
        )

        return JSONResponse(status_code=200, content=convert_tour(tour).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour update",
            extra={"tour_id": request.tour_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/delete", responses=problem_responses(404, 409))
async def delete_tour(
    request: DeleteTourRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Delete a tour that has no bookings, along with its departures."""
    tour_service = TourService(db)

    try:
        await tour_service.delete_tour(request.tour_id)
        return JSONResponse(status_code=200, content={"deleted": True, "tour_id": request.tour_id})

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour deletion",
            extra={"tour_id": request.tour_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
