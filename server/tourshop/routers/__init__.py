"""FastAPI routers package."""

from .admin import router as admin_router
from .checkout import router as checkout_router
from .currency import router as currency_router
from .departure import router as departure_router
from .health import router as health_router
from .metrics import router as metrics_router
from .payment import router as payment_router
from .room_option import router as room_option_router
from .tour import router as tour_router

__all__ = [
    "admin_router",
    "checkout_router",
    "currency_router",
    "departure_router",
    "health_router",
    "metrics_router",
    "payment_router",
    "room_option_router",
    "tour_router",
]
