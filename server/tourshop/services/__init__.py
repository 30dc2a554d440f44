"""Service layer package."""

from .booking_service import BookingService
from .checkout_service import CheckoutService
from .dashboard_service import DashboardService
from .departure_service import DepartureService
from .exchange_rate_service import ExchangeRateService
from .idempotency_service import IdempotencyService
from .notification_service import NotificationService
from .otp_service import OtpService
from .payment_service import PaymentService
from .room_option_service import RoomOptionService
from .tour_service import TourService

__all__ = [
    "BookingService",
    "CheckoutService",
    "DashboardService",
    "DepartureService",
    "ExchangeRateService",
    "IdempotencyService",
    "NotificationService",
    "OtpService",
    "PaymentService",
    "RoomOptionService",
    "TourService",
]
