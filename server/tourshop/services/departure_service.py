"""Departure service for scheduling and capacity operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.database import parse_resource_id
from ..core.exceptions import ConflictError, DepartureUnavailableError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.departure import DepartureStatus, TourDeparture
from ..schemas.departure import CreateDepartureRequest, ListDeparturesRequest, UpdateDepartureRequest
from .pricing import unit_price
from .tour_service import TourService

logger = logging.getLogger(__name__)


def derive_status(
    available_spaces: int,
    current: Optional[str] = None,
    filling_fast_threshold: Optional[int] = None,
) -> DepartureStatus:
    """Availability status implied by the remaining spaces; CANCELLED is sticky."""
    if current == DepartureStatus.CANCELLED:
        return DepartureStatus.CANCELLED
    threshold = settings.filling_fast_threshold if filling_fast_threshold is None else filling_fast_threshold
    if available_spaces <= 0:
        return DepartureStatus.SOLD_OUT
    if available_spaces <= threshold:
        return DepartureStatus.FILLING_FAST
    return DepartureStatus.AVAILABLE


def departure_unit_price(departure: TourDeparture) -> int:
    """Per-traveller price of a departure whose tour is loaded."""
    return unit_price(departure.price, departure.discounted_price, departure.tour.price_from)


class DepartureService:
    """Service for departure-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)

    async def create_departure(self, request: CreateDepartureRequest) -> TourDeparture:
        """
        Create a new departure.

        Status is derived from the available spaces unless the departure is
        created CANCELLED.

        Raises:
            NotFoundError: If tour not found
        """
        tour_id = parse_resource_id(request.tour_id, "tour")
        await self.tour_service.get_tour_by_id_or_raise(tour_id)

        departure = TourDeparture(
            tour_id=tour_id,
            departure_date=request.departure_date,
            end_date=request.end_date,
            price=request.price,
            discounted_price=request.discounted_price,
            available_spaces=request.available_spaces,
            status=derive_status(request.available_spaces, request.status).value,
        )

        self.db.add(departure)
        await self.db.commit()

        logger.info(
            "Departure created successfully",
            extra={
                "departure_id": str(departure.id),
                "tour_id": str(departure.tour_id),
                "departure_date": departure.departure_date.isoformat(),
                "available_spaces": departure.available_spaces,
                "status": departure.status
            }
        )
        metrics_collector.set_departure_spaces(str(departure.id), departure.available_spaces)

        return await self.get_departure_by_id_or_raise(departure.id)

    async def update_departure(self, request: UpdateDepartureRequest) -> TourDeparture:
        """
        Update the fields present in the request.

        Raises:
            NotFoundError: If departure not found
            ValidationError: If the resulting dates are inverted
        """
        departure_id = parse_resource_id(request.departure_id, "departure")
        departure = await self.get_departure_with_lock(departure_id)
        changes = request.model_dump(exclude_unset=True, exclude={"departure_id"})

        for field_name in ("departure_date", "end_date", "available_spaces"):
            if changes.get(field_name) is not None:
                setattr(departure, field_name, changes[field_name])
        for field_name in ("price", "discounted_price"):
            if field_name in changes:
                setattr(departure, field_name, changes[field_name])

        if departure.end_date < departure.departure_date:
            raise ValidationError(
                detail="end_date must not be before departure_date",
                violations=[{"path": "end_date", "message": "must not be before departure_date"}]
            )

        requested_status = changes.get("status")
        if requested_status is not None:
            # Reopening a cancelled departure re-derives from capacity
            departure.status = derive_status(departure.available_spaces, requested_status).value
        elif "available_spaces" in changes:
            departure.status = derive_status(departure.available_spaces, departure.status).value

        await self.db.commit()

        logger.info(
            "Departure updated successfully",
            extra={
                "departure_id": str(departure.id),
                "changed_fields": sorted(changes),
                "status": departure.status
            }
        )
        metrics_collector.set_departure_spaces(str(departure.id), departure.available_spaces)

        return await self.get_departure_by_id_or_raise(departure.id)

    async def delete_departure(self, departure_id: str) -> None:
        """
        Delete a departure that has never been booked.

        Raises:
            NotFoundError: If departure not found
            ConflictError: If bookings reference the departure
        """
        departure = await self.get_departure_by_id_or_raise(parse_resource_id(departure_id, "departure"))

        booking_count = await self.db.scalar(
            select(func.count(Booking.id)).where(Booking.departure_id == departure.id)
        )
        if booking_count:
            raise ConflictError(
                detail="Departure has bookings; cancel it instead of deleting it",
                conflicting_resource={"id": str(departure.id), "bookings": booking_count}
            )

        await self.db.delete(departure)
        await self.db.commit()

        logger.info("Departure deleted", extra={"departure_id": str(departure.id)})

    async def list_departures_for_tour(self, request: ListDeparturesRequest) -> list[TourDeparture]:
        """List a tour's departures ordered by departure date."""
        tour_id = parse_resource_id(request.tour_id, "tour")
        await self.tour_service.get_tour_by_id_or_raise(tour_id)

        conditions = [TourDeparture.tour_id == tour_id]
        if request.date_from:
            conditions.append(TourDeparture.departure_date >= request.date_from)
        if request.date_to:
            conditions.append(TourDeparture.departure_date <= request.date_to)
        if request.bookable_only:
            conditions.append(TourDeparture.status.in_(
                [DepartureStatus.AVAILABLE.value, DepartureStatus.FILLING_FAST.value]
            ))
            conditions.append(TourDeparture.available_spaces >= request.travelers)

        stmt = (
            select(TourDeparture)
            .options(selectinload(TourDeparture.tour))
            .where(and_(*conditions))
            .order_by(TourDeparture.departure_date, TourDeparture.id)
        )
        result = await self.db.execute(stmt)
        departures = list(result.scalars())

        logger.info(
            "Departure listing completed",
            extra={
                "tour_id": request.tour_id,
                "total_found": len(departures),
                "bookable_only": request.bookable_only
            }
        )

        return departures

    async def get_departure_by_id(self, departure_id: UUID) -> Optional[TourDeparture]:
        """Get departure by ID with its tour loaded."""
        stmt = (
            select(TourDeparture)
            .options(selectinload(TourDeparture.tour))
            .where(TourDeparture.id == departure_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_departure_by_id_or_raise(self, departure_id: UUID) -> TourDeparture:
        """
        Get departure by ID or raise NotFoundError.

        Raises:
            NotFoundError: If departure not found
        """
        departure = await self.get_departure_by_id(departure_id)
        if not departure:
            logger.warning("Departure not found", extra={"departure_id": str(departure_id)})
            raise NotFoundError(resource_type="departure", resource_id=str(departure_id))
        return departure

    async def get_departure_with_lock(self, departure_id: UUID) -> TourDeparture:
        """
        Get departure by ID with an advisory lock held for capacity changes.

        The lock is released when the surrounding transaction ends.

        Raises:
            NotFoundError: If departure not found
        """
        # Advisory locks are PostgreSQL-only; SQLite serialises writers anyway
        if self.db.bind and self.db.bind.dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:departure_id))"),
                {"departure_id": str(departure_id)}
            )

        departure = await self.get_departure_by_id_or_raise(departure_id)

        logger.debug("Acquired advisory lock for departure", extra={"departure_id": str(departure_id)})

        return departure

    def take_spaces(self, departure: TourDeparture, travelers: int) -> None:
        """
        Reserve spaces on a locked departure.

        Raises:
            DepartureUnavailableError: If the departure cannot take the party
        """
        if not departure.is_bookable(travelers):
            logger.warning(
                "Departure cannot take travellers",
                extra={
                    "departure_id": str(departure.id),
                    "status": departure.status,
                    "available_spaces": departure.available_spaces,
                    "requested": travelers
                }
            )
            raise DepartureUnavailableError(
                departure_id=str(departure.id),
                status=str(departure.status),
                available_spaces=departure.available_spaces,
                requested=travelers,
            )

        departure.available_spaces -= travelers
        departure.status = derive_status(departure.available_spaces, departure.status).value
        metrics_collector.set_departure_spaces(str(departure.id), departure.available_spaces)

    def release_spaces(self, departure: TourDeparture, travelers: int) -> None:
        """Return spaces to a locked departure."""
        departure.available_spaces += travelers
        departure.status = derive_status(departure.available_spaces, departure.status).value
        metrics_collector.set_departure_spaces(str(departure.id), departure.available_spaces)

        logger.info(
            "Departure spaces released",
            extra={
                "departure_id": str(departure.id),
                "released": travelers,
                "available_spaces": departure.available_spaces,
                "status": departure.status
            }
        )
