"""
Booking price arithmetic.

All amounts are integers in minor units of the tour currency. Nothing here
touches the database; the checkout and payment services feed it catalog rows
and persist what it returns.
"""

from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..models.booking import PaymentType
from ..models.tour import TripExtraType


@dataclass(frozen=True)
class ExtraCharge:
    """A trip extra line as it will be charged."""

    name: str
    unit_price: int
    quantity: int
    type: str = TripExtraType.OTHER.value
    trip_extra_id: Optional[str] = None

    @property
    def amount(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemised booking price plus the payment schedule."""

    currency: str
    travelers: int
    unit_price: int
    room_label: Optional[str] = None
    room_price_add: int = 0
    extras: tuple[ExtraCharge, ...] = field(default_factory=tuple)
    donation: int = 0
    payment_type: PaymentType = PaymentType.FULL_PAYMENT
    amount_due_now: int = 0
    balance_due: int = 0
    display_currency: Optional[str] = None
    exchange_rate: Optional[float] = None
    display_total: Optional[int] = None

    @property
    def trip_amount(self) -> int:
        return self.unit_price * self.travelers

    @property
    def room_amount(self) -> int:
        return self.room_price_add * self.travelers

    @property
    def extras_amount(self) -> int:
        return sum(extra.amount for extra in self.extras)

    @property
    def total(self) -> int:
        return self.trip_amount + self.room_amount + self.extras_amount + self.donation


def unit_price(price: Optional[int], discounted_price: Optional[int], price_from: int) -> int:
    """Per-traveller price of a departure: sale price, then departure price, then tour price."""
    if discounted_price is not None:
        return discounted_price
    if price is not None:
        return price
    return price_from


def charged_quantity(extra_type: str, requested: int, travelers: int) -> int:
    """
    Quantity actually charged for an extra.

    Kitty is charged once per traveller regardless of what was requested.
    """
    if requested < 0:
        raise ValueError("Add-on quantity cannot be negative")
    if extra_type == TripExtraType.KITTY:
        return travelers
    return requested


def payment_schedule(
    total: int,
    travelers: int,
    payment_type: PaymentType,
    deposit_per_traveler: int,
) -> tuple[int, int]:
    """Return ``(amount_due_now, balance_due)`` for a total."""
    if payment_type == PaymentType.DEPOSIT:
        due_now = min(total, deposit_per_traveler * travelers)
    else:
        due_now = total
    return due_now, total - due_now


def calculate_price(
    *,
    currency: str,
    travelers: int,
    unit_price: int,
    room_price_add: int = 0,
    room_label: Optional[str] = None,
    extras: Iterable[ExtraCharge] = (),
    donation: int = 0,
    payment_type: PaymentType = PaymentType.FULL_PAYMENT,
    deposit_per_traveler: int = 0,
) -> PriceBreakdown:
    """
    Price a booking.

    total = unit_price*travelers + room_price_add*travelers
            + sum(extra.unit_price*extra.quantity) + donation

    Extras with quantity 0 are dropped. No rounding, tax or proration.

    Raises:
        ValueError: On negative counts or amounts
    """
    if travelers < 0:
        raise ValueError("Traveller count cannot be negative")
    if donation < 0:
        raise ValueError("Donation cannot be negative")
    if unit_price < 0 or room_price_add < 0:
        raise ValueError("Prices cannot be negative")

    charged: list[ExtraCharge] = []
    for extra in extras:
        if extra.quantity < 0:
            raise ValueError(f"Add-on quantity cannot be negative: {extra.name}")
        if extra.unit_price < 0:
            raise ValueError(f"Add-on price cannot be negative: {extra.name}")
        if extra.quantity == 0:
            continue
        charged.append(extra)

    breakdown = PriceBreakdown(
        currency=currency,
        travelers=travelers,
        unit_price=unit_price,
        room_label=room_label,
        room_price_add=room_price_add,
        extras=tuple(charged),
        donation=donation,
        payment_type=payment_type,
    )
    due_now, balance = payment_schedule(breakdown.total, travelers, payment_type, deposit_per_traveler)
    return replace(breakdown, amount_due_now=due_now, balance_due=balance)


def convert_amount(amount: int, rate: float) -> int:
    """Convert minor units at ``rate``, rounding half away from zero."""
    converted = Decimal(amount) * Decimal(str(rate))
    return int(converted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def with_display_currency(breakdown: PriceBreakdown, currency: str, rate: float) -> PriceBreakdown:
    """Attach a display-only estimate; the charge amounts are untouched."""
    return replace(
        breakdown,
        display_currency=currency,
        exchange_rate=rate,
        display_total=convert_amount(breakdown.total, rate),
    )
