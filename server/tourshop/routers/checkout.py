"""Checkout router for the booking wizard."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, ExchangeRatesDep, RequiredAuth
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.checkout import (
    CheckoutSession,
    CheckoutSessionRequest,
    PriceBreakdown,
    QuoteRequest,
    StartCheckoutRequest,
    SubmitStepRequest,
)
from ..schemas.common import problem_responses
from ..services.checkout_service import CheckoutService
from .converters import convert_checkout_session, convert_price

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/checkout", tags=["checkout"])


def _session_response(session) -> JSONResponse:
    return JSONResponse(status_code=200, content=convert_checkout_session(session).model_dump(mode="json"))


@router.post("/start", response_model=CheckoutSession)
async def start_checkout(
    request: StartCheckoutRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """Open a checkout session for a tour, positioned on date selection."""
    checkout_service = CheckoutService(db)

    try:
        session = await checkout_service.start_checkout(user["user_id"], request.tour_id)
        return _session_response(session)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error starting checkout",
            extra={"tour_id": request.tour_id, "customer_ref": user["user_id"], "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/get", response_model=CheckoutSession)
async def get_checkout(
    request: CheckoutSessionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    checkout_service = CheckoutService(db)

    try:
        session = await checkout_service.get_session(request.session_id, user["user_id"])
        return _session_response(session)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error loading checkout",
            extra={"checkout_session_id": request.session_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/step", response_model=CheckoutSession, responses=problem_responses(404, 422))
async def submit_step(
    request: SubmitStepRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    """
    Validate and save one wizard step.

    Steps may be resubmitted but not skipped. Invalid data comes back as a
    422 Problem listing each violation.
    """
    checkout_service = CheckoutService(db)

    try:
        session = await checkout_service.submit_step(
            request.session_id,
            user["user_id"],
            request.step,
            request.data
        )
        return _session_response(session)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error submitting checkout step",
            extra={"checkout_session_id": request.session_id, "step": int(request.step), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/back", response_model=CheckoutSession)
async def back(
    request: CheckoutSessionRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth
) -> JSONResponse:
    checkout_service = CheckoutService(db)

    try:
        session = await checkout_service.back(request.session_id, user["user_id"])
        return _session_response(session)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error moving checkout back",
            extra={"checkout_session_id": request.session_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/quote", response_model=PriceBreakdown)
async def quote(
    request: QuoteRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    exchange_rates=ExchangeRatesDep
) -> JSONResponse:
    """
    Price the session as filled in so far.

    ``display_currency`` adds an estimate only; charges are always made in
    the tour currency.
    """
    checkout_service = CheckoutService(db)

    try:
        breakdown = await checkout_service.quote(
            request.session_id,
            user["user_id"],
            display_currency=request.display_currency,
            exchange_rates=exchange_rates
        )
        return JSONResponse(status_code=200, content=convert_price(breakdown).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error quoting checkout",
            extra={"checkout_session_id": request.session_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
