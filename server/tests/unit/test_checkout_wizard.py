"""Unit tests for the checkout wizard state machine and step checks."""

from uuid import uuid4

import pytest

from conftest import traveller_data
from tourshop.core.exceptions import CheckoutStepError
from tourshop.models.checkout import CheckoutStatus
from tourshop.models.departure import TourDeparture
from tourshop.models.room_option import RoomOption
from tourshop.models.tour import Tour, TripExtra
from tourshop.schemas.checkout import CheckoutStep, TravellerDetailsForm, TripExtrasForm
from tourshop.services import checkout_wizard as wizard


def make_tour(max_group_size: int = 12) -> Tour:
    return Tour(
        id=uuid4(),
        code="T1",
        slug="t1",
        title="T1",
        start_location="A",
        end_location="B",
        duration_days=5,
        max_group_size=max_group_size,
        price_from=100000,
        currency="USD",
        trip_extras=[
            TripExtra(id=uuid4(), type="KITTY", name="Kitty", price=4000),
            TripExtra(id=uuid4(), type="OPTIONAL_ACTIVITY", name="Rafting", price=9000),
            TripExtra(id=uuid4(), type="OTHER", name="Map", price=None),
        ],
    )


def make_departure(tour: Tour, spaces: int = 10, status: str = "AVAILABLE") -> TourDeparture:
    return TourDeparture(id=uuid4(), tour_id=tour.id, available_spaces=spaces, status=status)


def advance_to(step: CheckoutStep, travelers: int = 2) -> wizard.WizardState:
    state = wizard.WizardState()
    forms = {
        CheckoutStep.DATE_SELECTION: {"departure_id": "d", "number_of_travelers": travelers},
        CheckoutStep.ROOM_CONFIGURATION: {"room_option_id": "r"},
        CheckoutStep.TRAVELLER_DETAILS: {
            "travelers": [traveller_data("Ana", "Diaz", "ana@example.com")],
            "emergency_contact": {"name": "Bo Diaz", "phone": "+1 555 0100", "relationship": "Parent"},
        },
        CheckoutStep.TRIP_EXTRAS: {},
        CheckoutStep.PAYMENT: {"payment_type": "DEPOSIT", "agree_terms": True, "read_guidelines": True},
    }
    for current in CheckoutStep:
        if current >= step:
            break
        state = wizard.submit(state, current, wizard.parse_step_form(current, forms[current]))
    return state


def test_submit_advances_and_tracks_furthest_step():
    state = advance_to(CheckoutStep.TRIP_EXTRAS)

    assert state.current_step == CheckoutStep.TRIP_EXTRAS
    assert state.max_step_reached == CheckoutStep.TRIP_EXTRAS
    assert state.completed_steps == [
        CheckoutStep.DATE_SELECTION,
        CheckoutStep.ROOM_CONFIGURATION,
        CheckoutStep.TRAVELLER_DETAILS,
    ]
    assert state.status == CheckoutStatus.IN_PROGRESS


def test_last_step_marks_ready():
    state = advance_to(CheckoutStep.PAYMENT)
    state = wizard.submit(
        state,
        CheckoutStep.PAYMENT,
        wizard.parse_step_form(
            CheckoutStep.PAYMENT,
            {"payment_type": "FULL_PAYMENT", "agree_terms": True, "read_guidelines": True},
        ),
    )

    assert state.status == CheckoutStatus.READY
    assert state.current_step == CheckoutStep.PAYMENT


def test_cannot_skip_ahead():
    state = wizard.WizardState()
    form = wizard.parse_step_form(CheckoutStep.ROOM_CONFIGURATION, {"room_option_id": "r"})

    with pytest.raises(CheckoutStepError) as exc_info:
        wizard.submit(state, CheckoutStep.ROOM_CONFIGURATION, form)

    assert exc_info.value.status_code == 422
    assert exc_info.value.problem_details["violations"][0]["path"] == "step"


def test_back_keeps_data_and_stops_at_first_step():
    state = advance_to(CheckoutStep.TRAVELLER_DETAILS)

    state = wizard.back(state)
    assert state.current_step == CheckoutStep.ROOM_CONFIGURATION
    assert state.max_step_reached == CheckoutStep.TRAVELLER_DETAILS
    assert state.data_for(CheckoutStep.ROOM_CONFIGURATION) is not None

    for _ in range(5):
        state = wizard.back(state)
    assert state.current_step == CheckoutStep.DATE_SELECTION


def test_resubmitting_earlier_step_moves_forward_from_it():
    state = advance_to(CheckoutStep.PAYMENT)
    form = wizard.parse_step_form(CheckoutStep.ROOM_CONFIGURATION, {"room_option_id": "other"})

    state = wizard.submit(state, CheckoutStep.ROOM_CONFIGURATION, form)

    assert state.current_step == CheckoutStep.TRAVELLER_DETAILS
    assert state.max_step_reached == CheckoutStep.PAYMENT
    assert state.data_for(CheckoutStep.ROOM_CONFIGURATION)["room_option_id"] == "other"


def test_changing_traveller_count_discards_dependent_steps():
    state = advance_to(CheckoutStep.PAYMENT, travelers=2)
    form = wizard.parse_step_form(
        CheckoutStep.DATE_SELECTION,
        {"departure_id": "d", "number_of_travelers": 3},
    )

    state = wizard.submit(state, CheckoutStep.DATE_SELECTION, form)

    assert state.current_step == CheckoutStep.ROOM_CONFIGURATION
    assert state.max_step_reached == CheckoutStep.ROOM_CONFIGURATION
    assert state.data_for(CheckoutStep.TRAVELLER_DETAILS) is None
    assert state.data_for(CheckoutStep.TRIP_EXTRAS) is None
    assert state.data_for(CheckoutStep.ROOM_CONFIGURATION) is not None


def test_parse_step_form_reports_each_violation():
    with pytest.raises(CheckoutStepError) as exc_info:
        wizard.parse_step_form(
            CheckoutStep.PAYMENT,
            {"payment_type": "LATER", "agree_terms": False, "read_guidelines": True},
        )

    paths = {violation["path"] for violation in exc_info.value.problem_details["violations"]}
    assert paths == {"payment_type", "agree_terms"}
    assert exc_info.value.problem_details["step"] == "PAYMENT"


def test_traveller_form_field_rules():
    bad = traveller_data("A", "Diaz", "not-an-email")
    bad["date_of_birth"] = "2999-01-01"

    with pytest.raises(CheckoutStepError) as exc_info:
        wizard.parse_step_form(
            CheckoutStep.TRAVELLER_DETAILS,
            {
                "travelers": [bad],
                "emergency_contact": {"name": "Bo", "phone": "+1 555 0100", "relationship": "Parent"},
            },
        )

    paths = {violation["path"] for violation in exc_info.value.problem_details["violations"]}
    assert paths == {"travelers.0.first_name", "travelers.0.email", "travelers.0.date_of_birth"}


def test_check_date_selection():
    tour = make_tour(max_group_size=4)
    departure = make_departure(tour, spaces=3)
    form = wizard.parse_step_form(
        CheckoutStep.DATE_SELECTION,
        {"departure_id": str(departure.id), "number_of_travelers": 2},
    )
    assert wizard.check_date_selection(form, tour, departure) == []

    too_many = form.model_copy(update={"number_of_travelers": 5})
    paths = [v["path"] for v in wizard.check_date_selection(too_many, tour, departure)]
    assert paths == ["departure_id", "number_of_travelers"]

    cancelled = make_departure(tour, spaces=10, status="CANCELLED")
    assert wizard.check_date_selection(form, tour, cancelled)[0]["path"] == "departure_id"

    other_tour = make_departure(make_tour())
    assert wizard.check_date_selection(form, tour, other_tour)[0]["message"].startswith("Departure does not belong")
    assert wizard.check_date_selection(form, tour, None)[0]["path"] == "departure_id"


def test_check_room_configuration():
    tour = make_tour()
    room = RoomOption(id=uuid4(), tour_id=tour.id, room_type="Twin", price_add=0, is_default=True)
    form = wizard.parse_step_form(
        CheckoutStep.ROOM_CONFIGURATION,
        {"room_option_id": str(room.id), "roommates": ["Bo", None, "Cy"]},
    )

    paths = [v["path"] for v in wizard.check_room_configuration(form, tour, room, travelers=2)]
    assert paths == ["roommates"]
    assert wizard.check_room_configuration(form, tour, None, travelers=3)[0]["path"] == "room_option_id"


def test_normalize_travellers_marks_first_as_lead():
    form = TravellerDetailsForm.model_validate({
        "travelers": [
            traveller_data("Ana", "Diaz", "ana@example.com"),
            traveller_data("Ben", "Diaz", "ben@example.com"),
        ],
        "emergency_contact": {"name": "Bo Diaz", "phone": "+1 555 0100", "relationship": "Parent"},
    })

    normalized, violations = wizard.normalize_travellers(form, travelers=2)

    assert violations == []
    assert [t.is_lead_guest for t in normalized.travelers] == [True, False]


def test_normalize_travellers_rejects_wrong_count_and_two_leads():
    form = TravellerDetailsForm.model_validate({
        "travelers": [
            traveller_data("Ana", "Diaz", "ana@example.com", is_lead_guest=True),
            traveller_data("Ben", "Diaz", "ben@example.com", is_lead_guest=True),
        ],
        "emergency_contact": {"name": "Bo Diaz", "phone": "+1 555 0100", "relationship": "Parent"},
    })

    _, violations = wizard.normalize_travellers(form, travelers=3)

    assert len(violations) == 2


def test_trip_extras_must_belong_to_tour():
    tour = make_tour()
    form = TripExtrasForm.model_validate({"add_ons": [
        {"id": str(tour.trip_extras[1].id), "quantity": 1},
        {"id": str(uuid4()), "quantity": 1},
    ]})

    violations = wizard.check_trip_extras(form, tour)

    assert [v["path"] for v in violations] == ["add_ons.1.id"]


def test_build_extra_charges_always_includes_kitty():
    tour = make_tour()
    rafting = tour.trip_extras[1]
    form = TripExtrasForm.model_validate({"add_ons": [
        {"id": str(rafting.id), "quantity": 1},
        {"id": str(rafting.id), "quantity": 1},
    ]})

    charges = {charge.name: charge for charge in wizard.build_extra_charges(tour, form, travelers=3)}

    assert charges["Kitty"].quantity == 3
    assert charges["Kitty"].amount == 12000
    assert charges["Rafting"].quantity == 2
    assert charges["Rafting"].trip_extra_id == str(rafting.id)
    assert "Map" not in charges

    without_form = wizard.build_extra_charges(tour, None, travelers=2)
    assert [(c.name, c.quantity) for c in without_form] == [("Kitty", 2)]


def test_steps_view_uses_step_names():
    state = advance_to(CheckoutStep.TRAVELLER_DETAILS)

    assert list(wizard.steps_view(state.step_data)) == ["date_selection", "room_configuration"]
