"""Model to response schema converters shared by the routers."""

from ..core.database import as_utc
from ..models.booking import Booking as BookingModel
from ..models.checkout import CheckoutSession as CheckoutSessionModel
from ..models.departure import TourDeparture
from ..models.room_option import RoomOption as RoomOptionModel
from ..models.tour import Tour as TourModel
from ..schemas.booking import Booking, BookingAddOn, BookingDetails, BookingRoomGuest, BookingTraveler
from ..schemas.checkout import CheckoutSession, CheckoutStep, PriceBreakdown, PriceLine
from ..schemas.common import Money
from ..schemas.departure import Departure
from ..schemas.room_option import RoomOption
from ..schemas.tour import Tour, TripExtra
from ..services import pricing
from ..services.checkout_wizard import steps_view
from ..services.departure_service import departure_unit_price


def convert_tour(tour_model: TourModel) -> Tour:
    return Tour(
        id=str(tour_model.id),
        code=tour_model.code,
        slug=tour_model.slug,
        title=tour_model.title,
        start_location=tour_model.start_location,
        end_location=tour_model.end_location,
        duration_days=tour_model.duration_days,
        max_group_size=tour_model.max_group_size,
        price_from=Money(amount=tour_model.price_from, currency=tour_model.currency),
        overview=tour_model.overview,
        trip_extras=[
            TripExtra(
                id=str(extra.id),
                type=extra.type,
                name=extra.name,
                price=extra.price,
                notes=extra.notes,
            )
            for extra in tour_model.trip_extras
        ],
        created_at=as_utc(tour_model.created_at),
    )


def convert_departure(departure_model: TourDeparture, currency: str) -> Departure:
    return Departure(
        id=str(departure_model.id),
        tour_id=str(departure_model.tour_id),
        departure_date=departure_model.departure_date,
        end_date=departure_model.end_date,
        price=departure_model.price,
        discounted_price=departure_model.discounted_price,
        unit_price=Money(amount=departure_unit_price(departure_model), currency=currency),
        available_spaces=departure_model.available_spaces,
        status=departure_model.status,
    )


def convert_room_option(room_option_model: RoomOptionModel) -> RoomOption:
    return RoomOption(
        id=str(room_option_model.id),
        tour_id=str(room_option_model.tour_id),
        room_type=room_option_model.room_type,
        description=room_option_model.description,
        price_add=room_option_model.price_add,
        is_default=room_option_model.is_default,
    )


def convert_checkout_session(session_model: CheckoutSessionModel) -> CheckoutSession:
    current_step = CheckoutStep(session_model.current_step)
    return CheckoutSession(
        id=str(session_model.id),
        tour_id=str(session_model.tour_id),
        current_step=current_step,
        current_step_name=current_step.name.lower(),
        max_step_reached=session_model.max_step_reached,
        status=session_model.status,
        steps=steps_view(session_model.step_data or {}),
        booking_id=str(session_model.booking_id) if session_model.booking_id else None,
        created_at=as_utc(session_model.created_at),
        updated_at=as_utc(session_model.updated_at),
    )


def convert_price(breakdown: pricing.PriceBreakdown) -> PriceBreakdown:
    room = None
    if breakdown.room_label is not None:
        room = PriceLine(
            label=breakdown.room_label,
            unit_price=breakdown.room_price_add,
            quantity=breakdown.travelers,
            amount=breakdown.room_amount,
        )

    return PriceBreakdown(
        currency=breakdown.currency,
        trip=PriceLine(
            label="Trip",
            unit_price=breakdown.unit_price,
            quantity=breakdown.travelers,
            amount=breakdown.trip_amount,
        ),
        room=room,
        extras=[
            PriceLine(label=extra.name, unit_price=extra.unit_price, quantity=extra.quantity, amount=extra.amount)
            for extra in breakdown.extras
        ],
        donation=breakdown.donation,
        total=breakdown.total,
        payment_type=breakdown.payment_type,
        amount_due_now=breakdown.amount_due_now,
        balance_due=breakdown.balance_due,
        display_currency=breakdown.display_currency,
        exchange_rate=breakdown.exchange_rate,
        display_total=breakdown.display_total,
    )


def _booking_fields(booking_model: BookingModel) -> dict:
    return {
        "id": str(booking_model.id),
        "booking_number": booking_model.booking_number,
        "tour_id": str(booking_model.tour_id),
        "departure_id": str(booking_model.departure_id),
        "start_date": booking_model.start_date,
        "end_date": booking_model.end_date,
        "num_guests": booking_model.num_guests,
        "status": booking_model.status,
        "payment_status": booking_model.payment_status,
        "payment_type": booking_model.payment_type,
        "total_price": booking_model.total_price,
        "amount_due_now": booking_model.amount_due_now,
        "deposit_paid": booking_model.deposit_paid,
        "balance_due": booking_model.balance_due,
        "currency": booking_model.currency,
        "payment_order_id": booking_model.payment_order_id,
        "paid_at": as_utc(booking_model.paid_at),
        "expires_at": as_utc(booking_model.expires_at),
        "created_at": as_utc(booking_model.created_at),
    }


def convert_booking(booking_model: BookingModel) -> Booking:
    return Booking(**_booking_fields(booking_model))


def convert_booking_details(booking_model: BookingModel) -> BookingDetails:
    """Full booking view; travellers, room guests, add-ons and tour must be loaded."""
    return BookingDetails(
        **_booking_fields(booking_model),
        tour_title=booking_model.tour.title,
        tour_slug=booking_model.tour.slug,
        donation=booking_model.donation,
        special_requests=booking_model.special_requests,
        emergency_contact=booking_model.emergency_contact,
        insurance_required=booking_model.insurance_required,
        insurance_details=booking_model.insurance_details,
        travelers=[
            BookingTraveler(
                title=traveler.title,
                first_name=traveler.first_name,
                middle_name=traveler.middle_name,
                last_name=traveler.last_name,
                date_of_birth=traveler.date_of_birth,
                email=traveler.email,
                phone=traveler.phone,
                nationality=traveler.nationality,
                passport_no=traveler.passport_no,
                address=traveler.address,
                is_lead_guest=traveler.is_lead_guest,
            )
            for traveler in booking_model.travelers
        ],
        room_guests=[
            BookingRoomGuest(room_type=guest.room_type, guest_name=guest.guest_name, share_with=guest.share_with)
            for guest in booking_model.room_guests
        ],
        add_ons=[
            BookingAddOn(type=add_on.type, name=add_on.name, unit_price=add_on.unit_price, quantity=add_on.quantity)
            for add_on in booking_model.add_ons
        ],
    )
