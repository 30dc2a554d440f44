"""Aggregates for the admin dashboard."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import case, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.departure import TourDeparture
from ..models.tour import Tour

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
POPULAR_LIMIT = 5


@dataclass
class TourPopularity:
    tour: Tour
    booking_count: int


@dataclass
class DashboardSnapshot:
    tours: int = 0
    departures: int = 0
    bookings: int = 0
    pending_bookings: int = 0
    confirmed_bookings: int = 0
    customers: int = 0
    # currency -> minor units
    revenue: dict[str, int] = field(default_factory=dict)
    recent_bookings: list[Booking] = field(default_factory=list)
    popular_tours: list[TourPopularity] = field(default_factory=list)


class DashboardService:
    """Read-only statistics over the catalog and bookings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_stats(self) -> DashboardSnapshot:
        snapshot = DashboardSnapshot(
            tours=await self._count(select(func.count(Tour.id))),
            departures=await self._count(select(func.count(TourDeparture.id))),
            bookings=await self._count(select(func.count(Booking.id))),
            pending_bookings=await self._count(
                select(func.count(Booking.id)).where(Booking.status == BookingStatus.PENDING.value)
            ),
            confirmed_bookings=await self._count(
                select(func.count(Booking.id)).where(Booking.status == BookingStatus.CONFIRMED.value)
            ),
            customers=await self._count(select(func.count(func.distinct(Booking.customer_ref)))),
        )

        snapshot.revenue = await self._revenue()
        snapshot.recent_bookings = await self._recent_bookings()
        snapshot.popular_tours = await self._popular_tours()

        logger.debug(
            "Dashboard stats computed",
            extra={"bookings": snapshot.bookings, "currencies": sorted(snapshot.revenue)}
        )
        return snapshot

    async def _count(self, stmt) -> int:
        return int(await self.db.scalar(stmt) or 0)

    async def _revenue(self) -> dict[str, int]:
        collected = case(
            (Booking.payment_status == PaymentStatus.PAID.value, Booking.total_price),
            (Booking.payment_status == PaymentStatus.DEPOSIT_PAID.value, func.coalesce(Booking.deposit_paid, 0)),
            else_=0,
        )
        stmt = (
            select(Booking.currency, func.sum(collected))
            .where(Booking.payment_status.in_([PaymentStatus.PAID.value, PaymentStatus.DEPOSIT_PAID.value]))
            .group_by(Booking.currency)
            .order_by(Booking.currency)
        )
        result = await self.db.execute(stmt)
        return {currency: int(total or 0) for currency, total in result.all()}

    async def _recent_bookings(self) -> list[Booking]:
        stmt = select(Booking).order_by(Booking.created_at.desc(), Booking.booking_number).limit(RECENT_LIMIT)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def _popular_tours(self) -> list[TourPopularity]:
        booking_count = func.count(Booking.id).label("booking_count")
        stmt = (
            select(Tour, booking_count)
            .join(Booking, Booking.tour_id == Tour.id)
            .group_by(Tour.id)
            .order_by(desc("booking_count"), Tour.title)
            .limit(POPULAR_LIMIT)
        )
        result = await self.db.execute(stmt)
        return [TourPopularity(tour=tour, booking_count=count) for tour, count in result.all()]
