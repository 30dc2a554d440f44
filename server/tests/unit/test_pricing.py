"""Unit tests for booking price arithmetic."""

import pytest

from tourshop.models.booking import PaymentType
from tourshop.models.tour import TripExtraType
from tourshop.services.pricing import (
    ExtraCharge,
    calculate_price,
    charged_quantity,
    convert_amount,
    payment_schedule,
    unit_price,
    with_display_currency,
)


def test_unit_price_prefers_discount_then_departure_then_tour():
    assert unit_price(160000, 140000, 150000) == 140000
    assert unit_price(160000, None, 150000) == 160000
    assert unit_price(None, None, 150000) == 150000
    # A zero sale price is still a sale price
    assert unit_price(160000, 0, 150000) == 0


def test_kitty_is_charged_per_traveller():
    assert charged_quantity(TripExtraType.KITTY, 0, 3) == 3
    assert charged_quantity(TripExtraType.KITTY, 7, 3) == 3
    assert charged_quantity(TripExtraType.OPTIONAL_ACTIVITY, 2, 3) == 2
    assert charged_quantity(TripExtraType.OTHER, 0, 3) == 0

    with pytest.raises(ValueError):
        charged_quantity(TripExtraType.OTHER, -1, 3)


def test_calculate_price_full_payment():
    breakdown = calculate_price(
        currency="NZD",
        travelers=2,
        unit_price=150000,
        room_price_add=30000,
        room_label="Single Room",
        extras=[
            ExtraCharge(name="Group kitty", unit_price=5000, quantity=2, type="KITTY"),
            ExtraCharge(name="Milford Sound cruise", unit_price=12000, quantity=1),
            ExtraCharge(name="Welcome pack", unit_price=0, quantity=0),
        ],
        donation=1000,
    )

    assert breakdown.trip_amount == 300000
    assert breakdown.room_amount == 60000
    assert breakdown.extras_amount == 22000
    assert breakdown.total == 383000
    assert [extra.name for extra in breakdown.extras] == ["Group kitty", "Milford Sound cruise"]
    assert breakdown.amount_due_now == 383000
    assert breakdown.balance_due == 0


def test_calculate_price_deposit():
    breakdown = calculate_price(
        currency="NZD",
        travelers=3,
        unit_price=150000,
        payment_type=PaymentType.DEPOSIT,
        deposit_per_traveler=20000,
    )

    assert breakdown.total == 450000
    assert breakdown.amount_due_now == 60000
    assert breakdown.balance_due == 390000


def test_deposit_never_exceeds_total():
    assert payment_schedule(10000, 2, PaymentType.DEPOSIT, 20000) == (10000, 0)
    assert payment_schedule(10000, 2, PaymentType.FULL_PAYMENT, 20000) == (10000, 0)


def test_calculate_price_with_nothing_selected():
    breakdown = calculate_price(currency="USD", travelers=0, unit_price=150000)

    assert breakdown.total == 0
    assert breakdown.amount_due_now == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"travelers": -1},
        {"donation": -5},
        {"unit_price": -1},
        {"room_price_add": -1},
        {"extras": [ExtraCharge(name="Broken", unit_price=100, quantity=-1)]},
        {"extras": [ExtraCharge(name="Broken", unit_price=-100, quantity=1)]},
    ],
)
def test_calculate_price_rejects_negative_values(kwargs):
    arguments = {"currency": "USD", "travelers": 1, "unit_price": 1000, **kwargs}

    with pytest.raises(ValueError):
        calculate_price(**arguments)


def test_display_currency_estimate_leaves_charge_untouched():
    breakdown = calculate_price(currency="NZD", travelers=1, unit_price=100001)

    estimate = with_display_currency(breakdown, "USD", 0.6)

    assert estimate.total == 100001
    assert estimate.amount_due_now == 100001
    assert estimate.display_currency == "USD"
    assert estimate.display_total == 60001
    assert estimate.exchange_rate == 0.6


def test_convert_amount_rounds_half_up():
    assert convert_amount(5, 0.5) == 3
    assert convert_amount(101, 1.0) == 101
    assert convert_amount(0, 1.6) == 0
