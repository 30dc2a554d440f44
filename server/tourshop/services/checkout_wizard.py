"""
Checkout wizard state machine and step checks.

The wizard is linear: a step may be submitted when it is the current step or
an earlier one. Nothing in this module touches the database; callers pass in
the catalog rows the checks need.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import CheckoutStepError
from ..models.checkout import CheckoutSession, CheckoutStatus
from ..models.departure import TourDeparture
from ..models.room_option import RoomOption
from ..models.tour import Tour, TripExtraType
from ..schemas.checkout import (
    FIRST_STEP,
    LAST_STEP,
    STEP_FORMS,
    CheckoutStep,
    DateSelectionForm,
    RoomConfigurationForm,
    TravellerDetailsForm,
    TripExtrasForm,
)
from .pricing import ExtraCharge, charged_quantity

# Steps whose data depends on the number of travellers
TRAVELER_DEPENDENT_STEPS = (
    CheckoutStep.TRAVELLER_DETAILS,
    CheckoutStep.TRIP_EXTRAS,
    CheckoutStep.PAYMENT,
)


@dataclass(frozen=True)
class WizardState:
    """Position and saved data of a checkout session."""

    current_step: int = FIRST_STEP
    max_step_reached: int = FIRST_STEP
    step_data: dict[str, dict[str, Any]] = field(default_factory=dict)
    status: CheckoutStatus = CheckoutStatus.IN_PROGRESS

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "WizardState":
        return cls(
            current_step=session.current_step,
            max_step_reached=session.max_step_reached,
            step_data=dict(session.step_data or {}),
            status=CheckoutStatus(session.status),
        )

    def apply_to(self, session: CheckoutSession) -> None:
        session.current_step = self.current_step
        session.max_step_reached = self.max_step_reached
        # Reassign so the JSON column is flagged dirty
        session.step_data = dict(self.step_data)
        session.status = self.status.value

    def data_for(self, step: CheckoutStep) -> Optional[dict[str, Any]]:
        return self.step_data.get(str(int(step)))

    @property
    def completed_steps(self) -> list[CheckoutStep]:
        return sorted(CheckoutStep(int(key)) for key in self.step_data)


def violations_from(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{path, message}`` violations."""
    return [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())) or "__root__",
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]


def parse_step_form(step: CheckoutStep, data: dict[str, Any]) -> BaseModel:
    """
    Validate raw form data for a step.

    Raises:
        CheckoutStepError: With one violation per invalid field
    """
    try:
        return STEP_FORMS[step].model_validate(data)
    except PydanticValidationError as e:
        raise CheckoutStepError(step=step.name, violations=violations_from(e))


def ensure_submittable(state: WizardState, step: CheckoutStep) -> None:
    """
    Raises:
        CheckoutStepError: If ``step`` is ahead of the current step
    """
    if step > state.current_step:
        raise CheckoutStepError(
            step=step.name,
            violations=[{"path": "step", "message": f"Complete step {state.current_step} first"}],
            detail=f"Step {int(step)} is not reachable from step {state.current_step}",
        )


def submit(state: WizardState, step: CheckoutStep, form: BaseModel) -> WizardState:
    """
    Record a validated step and advance.

    Changing the traveller count on step 1 discards the traveller-dependent
    steps and sends the buyer back through room configuration.
    """
    ensure_submittable(state, step)

    step_data = dict(state.step_data)
    previous = state.data_for(step)
    step_data[str(int(step))] = form.model_dump(mode="json")

    if step == CheckoutStep.DATE_SELECTION and previous is not None:
        if previous.get("number_of_travelers") != form.number_of_travelers:
            for dependent in TRAVELER_DEPENDENT_STEPS:
                step_data.pop(str(int(dependent)), None)
            return replace(
                state,
                current_step=CheckoutStep.ROOM_CONFIGURATION,
                max_step_reached=CheckoutStep.ROOM_CONFIGURATION,
                step_data=step_data,
                status=CheckoutStatus.IN_PROGRESS,
            )

    if step == LAST_STEP:
        return replace(state, current_step=LAST_STEP, step_data=step_data, status=CheckoutStatus.READY)

    next_step = step + 1
    return replace(
        state,
        current_step=next_step,
        max_step_reached=max(state.max_step_reached, next_step),
        step_data=step_data,
        status=CheckoutStatus.IN_PROGRESS,
    )


def back(state: WizardState) -> WizardState:
    """Move one step back, never before the first step; saved data is kept."""
    return replace(
        state,
        current_step=max(FIRST_STEP, state.current_step - 1),
        status=CheckoutStatus.IN_PROGRESS,
    )


def steps_view(step_data: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Saved step data keyed by lower-case step name."""
    return {
        CheckoutStep(int(key)).name.lower(): value
        for key, value in sorted(step_data.items())
    }


# Cross-field checks against the catalog

def check_date_selection(
    form: DateSelectionForm,
    tour: Tour,
    departure: Optional[TourDeparture],
) -> list[dict[str, str]]:
    violations = []
    if departure is None or departure.tour_id != tour.id:
        violations.append({"path": "departure_id", "message": "Departure does not belong to this tour"})
    elif not departure.is_bookable(form.number_of_travelers):
        violations.append({
            "path": "departure_id",
            "message": (
                f"Departure is not available for {form.number_of_travelers} traveller(s); "
                f"{departure.available_spaces} space(s) left"
            ),
        })
    if form.number_of_travelers > tour.max_group_size:
        violations.append({
            "path": "number_of_travelers",
            "message": f"Group size cannot exceed {tour.max_group_size}",
        })
    return violations


def check_room_configuration(
    form: RoomConfigurationForm,
    tour: Tour,
    room_option: Optional[RoomOption],
    travelers: int,
) -> list[dict[str, str]]:
    violations = []
    if room_option is None or room_option.tour_id != tour.id:
        violations.append({"path": "room_option_id", "message": "Room option does not belong to this tour"})
    if len(form.roommates) > travelers:
        violations.append({"path": "roommates", "message": f"At most {travelers} roommate entries"})
    return violations


def normalize_travellers(
    form: TravellerDetailsForm,
    travelers: int,
) -> tuple[TravellerDetailsForm, list[dict[str, str]]]:
    """Check the party against step 1 and make sure exactly one lead guest is marked."""
    violations = []
    if len(form.travelers) != travelers:
        violations.append({
            "path": "travelers",
            "message": f"Expected details for {travelers} traveller(s), got {len(form.travelers)}",
        })

    leads = [index for index, traveller in enumerate(form.travelers) if traveller.is_lead_guest]
    if len(leads) > 1:
        violations.append({"path": "travelers", "message": "Only one traveller can be the lead guest"})
    elif not leads and form.travelers:
        first = form.travelers[0].model_copy(update={"is_lead_guest": True})
        form = form.model_copy(update={"travelers": [first, *form.travelers[1:]]})

    return form, violations


def check_trip_extras(form: TripExtrasForm, tour: Tour) -> list[dict[str, str]]:
    known = {str(extra.id) for extra in tour.trip_extras}
    return [
        {"path": f"add_ons.{index}.id", "message": "Not an extra offered with this tour"}
        for index, selection in enumerate(form.add_ons)
        if selection.id not in known
    ]


def build_extra_charges(
    tour: Tour,
    form: Optional[TripExtrasForm],
    travelers: int,
) -> list[ExtraCharge]:
    """Charged extra lines; kitty extras are included even when not selected."""
    requested: dict[str, int] = {}
    if form is not None:
        for selection in form.add_ons:
            requested[selection.id] = requested.get(selection.id, 0) + selection.quantity

    charges = []
    for extra in tour.trip_extras:
        quantity = charged_quantity(extra.type, requested.get(str(extra.id), 0), travelers)
        if quantity:
            charges.append(ExtraCharge(
                name=extra.name,
                unit_price=extra.price or 0,
                quantity=quantity,
                type=TripExtraType(extra.type).value,
                trip_extra_id=str(extra.id),
            ))
    return charges
