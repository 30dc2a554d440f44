"""Payment router for the order-then-capture handshake."""

import json
import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import (
    DatabaseSession,
    IdempotencyKey,
    NotificationsDep,
    PaymentGatewayDep,
    RequiredAuth,
)
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.booking import Booking
from ..schemas.common import problem_responses
from ..schemas.payment import CancelOrderRequest, CaptureOrderRequest, CreateOrderRequest, CreateOrderResponse
from ..services.idempotency_service import IdempotencyService
from ..services.payment_service import PaymentService
from .converters import convert_booking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])


async def _handle_idempotent_operation(
    method: str,
    idempotency_key: str,
    owner_ref: str,
    request_body: dict[str, Any],
    operation_func,
    db: AsyncSession
) -> JSONResponse:
    """Run an operation once per (key, method, caller) and replay its response."""
    idempotency_service = IdempotencyService(db)

    cached_response = await idempotency_service.check_idempotency(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body,
        owner_ref=owner_ref
    )
    if cached_response:
        status_code, response_body = cached_response
        if status_code >= 400:
            return JSONResponse(status_code=status_code, content=response_body, media_type="application/problem+json")
        return JSONResponse(status_code=status_code, content=response_body)

    try:
        result = await operation_func()

        if isinstance(result, JSONResponse):
            response_dict = json.loads(result.body)
            status_code = result.status_code
        else:
            response_dict = result
            status_code = 200

        await idempotency_service.store_response(
            idempotency_key=idempotency_key,
            method=method,
            request_body=request_body,
            status_code=status_code,
            response_body=response_dict,
            owner_ref=owner_ref
        )

        return JSONResponse(status_code=status_code, content=response_dict)

    except ProblemDetailsException as e:
        # Retryable failures must run again on the next attempt
        if not e.problem_details.get("retryable", False):
            await idempotency_service.store_response(
                idempotency_key=idempotency_key,
                method=method,
                request_body=request_body,
                status_code=e.status_code,
                response_body=e.problem_details,
                owner_ref=owner_ref
            )
        raise


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    responses=problem_responses(402, 404, 409, 422, 502)
)
async def create_order(
    request: CreateOrderRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    idempotency_key: str = IdempotencyKey,
    gateway=PaymentGatewayDep
) -> JSONResponse:
    """
    Open a payment order for a ready checkout.

    Creates a PENDING booking holding the departure's spaces until the order
    is captured, cancelled or expires. Idempotent on the Idempotency-Key
    header.
    """
    payment_service = PaymentService(db, gateway)

    async def operation():
        created = await payment_service.create_order(request.session_id, user["user_id"])
        response_data = CreateOrderResponse(
            order_id=created.order_id,
            booking_id=str(created.booking.id),
            booking_number=created.booking.booking_number,
            amount=created.booking.amount_due_now,
            currency=created.booking.currency
        )
        return response_data.model_dump(mode="json")

    try:
        return await _handle_idempotent_operation(
            method="create_order",
            idempotency_key=idempotency_key,
            owner_ref=user["user_id"],
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating payment order",
            extra={"checkout_session_id": request.session_id, "idempotency_key": idempotency_key, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/capture-order", response_model=Booking, responses=problem_responses(402, 404, 409, 502))
async def capture_order(
    request: CaptureOrderRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    gateway=PaymentGatewayDep,
    notifications=NotificationsDep
) -> JSONResponse:
    """
    Capture an approved order and confirm the booking.

    Capturing an already paid booking returns it unchanged.
    """
    payment_service = PaymentService(db, gateway, notifications)

    try:
        booking = await payment_service.capture_order(request.booking_id, request.order_id, user["user_id"])
        return JSONResponse(status_code=200, content=convert_booking(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error capturing payment order",
            extra={"booking_id": request.booking_id, "order_id": request.order_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/cancel-order", response_model=Booking)
async def cancel_order(
    request: CancelOrderRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    gateway=PaymentGatewayDep
) -> JSONResponse:
    """Abandon an unpaid order and release the departure's spaces."""
    payment_service = PaymentService(db, gateway)

    try:
        booking = await payment_service.cancel_order(request.booking_id, user["user_id"])
        return JSONResponse(status_code=200, content=convert_booking(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error cancelling payment order",
            extra={"booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
