"""Checkout service: persisted wizard sessions, step validation and quotes."""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import parse_resource_id
from ..core.exceptions import CheckoutIncompleteError, CheckoutStepError, ConflictError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import PaymentType
from ..models.checkout import CheckoutSession, CheckoutStatus
from ..models.departure import TourDeparture
from ..models.room_option import RoomOption
from ..models.tour import Tour
from ..schemas.checkout import (
    CheckoutStep,
    DateSelectionForm,
    PaymentForm,
    RoomConfigurationForm,
    TravellerDetailsForm,
    TripExtrasForm,
)
from . import checkout_wizard as wizard
from .departure_service import DepartureService, departure_unit_price
from .pricing import PriceBreakdown, calculate_price, with_display_currency
from .room_option_service import RoomOptionService
from .tour_service import TourService

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSnapshot:
    """A fully validated checkout, ready to be turned into a booking."""

    session: CheckoutSession
    tour: Tour
    departure: TourDeparture
    room_option: RoomOption
    dates: DateSelectionForm
    rooms: RoomConfigurationForm
    travellers: TravellerDetailsForm
    extras: TripExtrasForm
    payment: PaymentForm
    price: PriceBreakdown


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


class CheckoutService:
    """Service for checkout wizard operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)
        self.departure_service = DepartureService(db)
        self.room_option_service = RoomOptionService(db)

    async def start_checkout(self, customer_ref: str, tour_id: str) -> CheckoutSession:
        """
        Open a checkout session for a tour.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.tour_service.get_tour_by_id_or_raise(parse_resource_id(tour_id, "tour"))

        session = CheckoutSession(
            tour_id=tour.id,
            customer_ref=customer_ref,
            current_step=CheckoutStep.DATE_SELECTION,
            max_step_reached=CheckoutStep.DATE_SELECTION,
            step_data={},
            status=CheckoutStatus.IN_PROGRESS.value,
        )
        self.db.add(session)
        await self.db.commit()

        metrics_collector.record_checkout_started(str(tour.id))
        logger.info(
            "Checkout started",
            extra={"checkout_session_id": str(session.id), "tour_id": str(tour.id), "customer_ref": customer_ref}
        )
        return session

    async def get_session(self, session_id: str, customer_ref: str, for_update: bool = False) -> CheckoutSession:
        """
        Load a session owned by the caller, optionally locking its row.

        Raises:
            NotFoundError: If the session does not exist or belongs to someone else
        """
        session_uuid = parse_resource_id(session_id, "checkout_session")
        stmt = (
            select(CheckoutSession)
            .where(CheckoutSession.id == session_uuid)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        session = result.scalar_one_or_none()

        if session is None or session.customer_ref != customer_ref:
            logger.warning(
                "Checkout session not found",
                extra={"checkout_session_id": session_id, "customer_ref": customer_ref}
            )
            raise NotFoundError(resource_type="checkout_session", resource_id=session_id)
        return session

    async def submit_step(
        self,
        session_id: str,
        customer_ref: str,
        step: CheckoutStep,
        data: dict[str, Any],
    ) -> CheckoutSession:
        """
        Validate and record one step.

        Raises:
            NotFoundError: If the session is unknown to the caller
            ConflictError: If the session has already been ordered
            CheckoutStepError: If the step is unreachable or its data is invalid
        """
        session = await self.get_session(session_id, customer_ref)
        self._ensure_open(session)

        state = wizard.WizardState.from_session(session)
        wizard.ensure_submittable(state, step)

        tour = await self.tour_service.get_tour_by_id_or_raise(session.tour_id)
        form = wizard.parse_step_form(step, data)
        form = await self._check_step(step, form, tour, state)

        new_state = wizard.submit(state, step, form)
        new_state.apply_to(session)
        await self.db.commit()

        logger.info(
            "Checkout step submitted",
            extra={
                "checkout_session_id": str(session.id),
                "step": step.name,
                "current_step": session.current_step,
                "status": session.status
            }
        )
        return session

    async def back(self, session_id: str, customer_ref: str) -> CheckoutSession:
        """Move the session one step back."""
        session = await self.get_session(session_id, customer_ref)
        self._ensure_open(session)

        wizard.back(wizard.WizardState.from_session(session)).apply_to(session)
        await self.db.commit()

        logger.info(
            "Checkout moved back",
            extra={"checkout_session_id": str(session.id), "current_step": session.current_step}
        )
        return session

    async def quote(
        self,
        session_id: str,
        customer_ref: str,
        display_currency: Optional[str] = None,
        exchange_rates=None,
    ) -> PriceBreakdown:
        """
        Price whatever has been filled in so far.

        Unfilled lines count as zero. When ``display_currency`` is given an
        estimate is attached using ``exchange_rates``.
        """
        session = await self.get_session(session_id, customer_ref)
        state = wizard.WizardState.from_session(session)
        tour = await self.tour_service.get_tour_by_id_or_raise(session.tour_id)

        travelers = 0
        price_per_traveler = tour.price_from
        dates_data = state.data_for(CheckoutStep.DATE_SELECTION)
        if dates_data:
            dates = DateSelectionForm.model_validate(dates_data)
            departure = await self._find_departure(dates.departure_id)
            travelers = dates.number_of_travelers
            if departure is not None:
                price_per_traveler = departure_unit_price(departure)

        room_option = None
        rooms_data = state.data_for(CheckoutStep.ROOM_CONFIGURATION)
        if rooms_data:
            room_option = await self._find_room_option(rooms_data["room_option_id"])

        extras_data = state.data_for(CheckoutStep.TRIP_EXTRAS)
        extras = TripExtrasForm.model_validate(extras_data) if extras_data else None

        payment_data = state.data_for(CheckoutStep.PAYMENT)
        payment_type = PaymentForm.model_validate(payment_data).payment_type if payment_data else PaymentType.FULL_PAYMENT

        breakdown = self._price(tour, price_per_traveler, travelers, room_option, extras, payment_type)

        if display_currency and exchange_rates is not None and display_currency != breakdown.currency:
            await exchange_rates.get_rates()
            rate = exchange_rates.rate(breakdown.currency, display_currency)
            breakdown = with_display_currency(breakdown, display_currency, rate)

        return breakdown

    async def validate_complete(self, session: CheckoutSession) -> CheckoutSnapshot:
        """
        Re-run every step against current catalog data.

        Raises:
            CheckoutIncompleteError: If the session is not READY or a step is missing
            CheckoutStepError: If a saved step no longer validates
        """
        state = wizard.WizardState.from_session(session)
        if state.status != CheckoutStatus.READY:
            raise CheckoutIncompleteError(
                session_id=str(session.id),
                detail=f"Checkout is {state.status.value}; submit every step before paying",
            )

        missing = [step.name for step in CheckoutStep if state.data_for(step) is None]
        if missing:
            raise CheckoutIncompleteError(
                session_id=str(session.id),
                detail=f"Checkout is missing steps: {', '.join(missing)}",
            )

        tour = await self.tour_service.get_tour_by_id_or_raise(session.tour_id)
        forms: dict[CheckoutStep, BaseModel] = {}
        for step in CheckoutStep:
            form = wizard.parse_step_form(step, state.data_for(step))
            forms[step] = await self._check_step(step, form, tour, state)

        dates = forms[CheckoutStep.DATE_SELECTION]
        rooms = forms[CheckoutStep.ROOM_CONFIGURATION]
        extras = forms[CheckoutStep.TRIP_EXTRAS]
        payment = forms[CheckoutStep.PAYMENT]
        departure = await self._find_departure(dates.departure_id)
        room_option = await self._find_room_option(rooms.room_option_id)

        price = self._price(
            tour,
            departure_unit_price(departure),
            dates.number_of_travelers,
            room_option,
            extras,
            payment.payment_type,
        )

        return CheckoutSnapshot(
            session=session,
            tour=tour,
            departure=departure,
            room_option=room_option,
            dates=dates,
            rooms=rooms,
            travellers=forms[CheckoutStep.TRAVELLER_DETAILS],
            extras=extras,
            payment=payment,
            price=price,
        )

    async def _check_step(
        self,
        step: CheckoutStep,
        form: BaseModel,
        tour: Tour,
        state: wizard.WizardState,
    ) -> BaseModel:
        """Cross-check a parsed form against the catalog, returning the normalised form."""
        if step == CheckoutStep.DATE_SELECTION:
            departure = await self._find_departure(form.departure_id)
            violations = wizard.check_date_selection(form, tour, departure)
        else:
            travelers = self._travelers(state)
            if step == CheckoutStep.ROOM_CONFIGURATION:
                room_option = await self._find_room_option(form.room_option_id)
                violations = wizard.check_room_configuration(form, tour, room_option, travelers)
            elif step == CheckoutStep.TRAVELLER_DETAILS:
                form, violations = wizard.normalize_travellers(form, travelers)
            elif step == CheckoutStep.TRIP_EXTRAS:
                violations = wizard.check_trip_extras(form, tour)
            else:
                violations = []

        if violations:
            logger.info(
                "Checkout step rejected",
                extra={"step": step.name, "violations": len(violations)}
            )
            raise CheckoutStepError(step=step.name, violations=violations)
        return form

    def _price(
        self,
        tour: Tour,
        price_per_traveler: int,
        travelers: int,
        room_option: Optional[RoomOption],
        extras: Optional[TripExtrasForm],
        payment_type: PaymentType,
    ) -> PriceBreakdown:
        return calculate_price(
            currency=tour.currency,
            travelers=travelers,
            unit_price=price_per_traveler,
            room_price_add=room_option.price_add if room_option else 0,
            room_label=room_option.room_type if room_option else None,
            extras=wizard.build_extra_charges(tour, extras, travelers),
            donation=extras.donation if extras else 0,
            payment_type=payment_type,
            deposit_per_traveler=settings.deposit_per_traveler,
        )

    @staticmethod
    def _travelers(state: wizard.WizardState) -> int:
        dates = state.data_for(CheckoutStep.DATE_SELECTION)
        if dates is None:
            raise CheckoutStepError(
                step=CheckoutStep.DATE_SELECTION.name,
                violations=[{"path": "step", "message": "Select a departure first"}],
            )
        return int(dates["number_of_travelers"])

    @staticmethod
    def _ensure_open(session: CheckoutSession) -> None:
        if session.status == CheckoutStatus.ORDERED:
            raise ConflictError(
                detail="Checkout has already been turned into a booking",
                conflicting_resource={
                    "checkout_session_id": str(session.id),
                    "booking_id": str(session.booking_id) if session.booking_id else None
                }
            )

    async def _find_departure(self, departure_id: str) -> Optional[TourDeparture]:
        departure_uuid = _as_uuid(departure_id)
        if departure_uuid is None:
            return None
        return await self.departure_service.get_departure_by_id(departure_uuid)

    async def _find_room_option(self, room_option_id: str) -> Optional[RoomOption]:
        room_option_uuid = _as_uuid(room_option_id)
        if room_option_uuid is None:
            return None
        return await self.room_option_service.get_room_option(room_option_uuid)
