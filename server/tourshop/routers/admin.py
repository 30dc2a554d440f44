"""Admin router: manage-booking lookup, status changes and dashboard."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession, NotificationsDep
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.admin import (
    DashboardStats,
    DashboardTotals,
    PopularTour,
    RequestOtpRequest,
    RequestOtpResponse,
    UpdateBookingStatusRequest,
    UpdatePaymentStatusRequest,
    VerifyOtpRequest,
)
from ..schemas.booking import Booking, BookingDetails
from ..schemas.common import Money, problem_responses
from ..services.booking_service import BookingService
from ..services.dashboard_service import DashboardService
from ..services.otp_service import OtpService
from .converters import convert_booking, convert_booking_details

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post("/bookings/request-otp", response_model=RequestOtpResponse)
async def request_otp(
    request: RequestOtpRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
    notifications=NotificationsDep
) -> JSONResponse:
    """
    Email a six-digit code to the booking's lead traveller.

    An unknown booking number and a mismatched email give the same 404.
    """
    otp_service = OtpService(db, notifications)

    try:
        expires_in = await otp_service.request_otp(request.booking_number, request.email)
        response_data = RequestOtpResponse(sent=True, expires_in_seconds=expires_in)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error issuing manage-booking code",
            extra={"booking_number": request.booking_number, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/bookings/verify-otp", response_model=BookingDetails, responses=problem_responses(404, 410, 422, 429))
async def verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Exchange a code for the full booking."""
    otp_service = OtpService(db)

    try:
        booking = await otp_service.verify_otp(request.booking_number, request.email, request.otp)
        return JSONResponse(status_code=200, content=convert_booking_details(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error verifying manage-booking code",
            extra={"booking_number": request.booking_number, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/bookings/status", response_model=Booking)
async def update_booking_status(
    request: UpdateBookingStatusRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    """Change a booking's status; cancelling releases its spaces."""
    booking_service = BookingService(db)

    try:
        booking = await booking_service.update_booking_status(request.booking_id, request.status)

        logger.info(
            "Admin changed booking status",
            extra={"booking_id": request.booking_id, "status": request.status, "admin": user["user_id"]}
        )

        return JSONResponse(status_code=200, content=convert_booking(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error updating booking status",
            extra={"booking_id": request.booking_id, "status": request.status, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/bookings/payment-status", response_model=Booking)
async def update_payment_status(
    request: UpdatePaymentStatusRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    booking_service = BookingService(db)

    try:
        booking = await booking_service.update_payment_status(request.booking_id, request.payment_status)

        logger.info(
            "Admin changed payment status",
            extra={
                "booking_id": request.booking_id,
                "payment_status": request.payment_status,
                "admin": user["user_id"]
            }
        )

        return JSONResponse(status_code=200, content=convert_booking(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error updating payment status",
            extra={"booking_id": request.booking_id, "payment_status": request.payment_status, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth
) -> JSONResponse:
    dashboard_service = DashboardService(db)

    try:
        stats = await dashboard_service.get_stats()
        response_data = DashboardStats(
            totals=DashboardTotals(
                tours=stats.tours,
                departures=stats.departures,
                bookings=stats.bookings,
                pending_bookings=stats.pending_bookings,
                confirmed_bookings=stats.confirmed_bookings,
                customers=stats.customers
            ),
            revenue=[Money(amount=amount, currency=currency) for currency, amount in stats.revenue.items()],
            recent_bookings=[convert_booking(booking) for booking in stats.recent_bookings],
            popular_tours=[
                PopularTour(
                    tour_id=str(entry.tour.id),
                    title=entry.tour.title,
                    slug=entry.tour.slug,
                    booking_count=entry.booking_count
                )
                for entry in stats.popular_tours
            ]
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error("Unexpected error computing dashboard stats", extra={"error": str(e)}, exc_info=True)
        raise InternalServerError()
