"""Tour service for catalog operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.database import parse_resource_id
from ..core.exceptions import ConflictError, NotFoundError
from ..models.booking import Booking
from ..models.tour import Tour, TripExtra
from ..schemas.tour import CreateTourRequest, ListToursRequest, TourSort, UpdateTourRequest

logger = logging.getLogger(__name__)

# Sort column and direction for each non-default ordering; ties break on id
SORT_COLUMNS = {
    TourSort.PRICE_ASC: (Tour.price_from, False),
    TourSort.PRICE_DESC: (Tour.price_from, True),
    TourSort.DURATION_ASC: (Tour.duration_days, False),
    TourSort.DURATION_DESC: (Tour.duration_days, True),
}


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_tour(self, request: CreateTourRequest) -> Tour:
        """
        Create a new tour together with its trip extras.

        Args:
            request: Tour creation request

        Returns:
            Created tour entity

        Raises:
            ConflictError: If a tour with the same slug or code already exists
        """
        existing_tour = await self._find_conflicting_tour(request.slug, request.code)
        if existing_tour:
            logger.warning(
                "Tour creation failed - slug or code already exists",
                extra={
                    "slug": request.slug,
                    "code": request.code,
                    "existing_tour_id": str(existing_tour.id)
                }
            )
            raise self._conflict(request.slug, request.code, existing_tour)

        tour = Tour(
            code=request.code,
            slug=request.slug,
            title=request.title,
            start_location=request.start_location,
            end_location=request.end_location,
            duration_days=request.duration_days,
            max_group_size=request.max_group_size,
            price_from=request.price_from,
            currency=request.currency,
            overview=request.overview,
            trip_extras=[
                TripExtra(type=extra.type.value, name=extra.name, price=extra.price, notes=extra.notes)
                for extra in request.trip_extras
            ],
        )

        try:
            self.db.add(tour)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour creation failed due to integrity constraint",
                extra={"slug": request.slug, "code": request.code, "error": str(e)}
            )
            existing_tour = await self._find_conflicting_tour(request.slug, request.code)
            if existing_tour:
                raise self._conflict(request.slug, request.code, existing_tour)
            raise ConflictError(detail="Tour creation failed due to constraint violation")

        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "slug": tour.slug,
                "extras": len(request.trip_extras)
            }
        )

        return await self.get_tour_by_id_or_raise(tour.id)

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """Get tour by ID with its trip extras loaded."""
        stmt = (
            select(Tour)
            .options(selectinload(Tour.trip_extras))
            .where(Tour.id == tour_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_slug(self, slug: str) -> Optional[Tour]:
        """Get tour by slug with its trip extras loaded."""
        stmt = (
            select(Tour)
            .options(selectinload(Tour.trip_extras))
            .where(Tour.slug == slug)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning("Tour not found", extra={"tour_id": str(tour_id)})
            raise NotFoundError(resource_type="tour", resource_id=str(tour_id))
        return tour

    async def get_tour(self, tour_id: Optional[str] = None, slug: Optional[str] = None) -> Tour:
        """
        Get a tour by id or by slug.

        Raises:
            NotFoundError: If no tour matches
        """
        if tour_id is not None:
            return await self.get_tour_by_id_or_raise(parse_resource_id(tour_id, "tour"))

        tour = await self.get_tour_by_slug(slug or "")
        if not tour:
            logger.warning("Tour not found", extra={"slug": slug})
            raise NotFoundError(resource_type="tour", detail=f"No tour with slug '{slug}'")
        return tour

    async def list_tours(self, request: ListToursRequest) -> tuple[list[Tour], Optional[str]]:
        """
        Search tours with cursor pagination.

        Keyword, price and duration filters combine with AND. The default
        ordering is by id; the price and duration orderings break ties on id
        so the cursor, the id of the last tour returned, stays stable.

        Returns:
            The page of tours and the cursor for the next page, if any
        """
        stmt = select(Tour).options(selectinload(Tour.trip_extras)).where(*self._search_conditions(request))
        sort_column, descending = SORT_COLUMNS.get(request.sort, (None, False))

        if request.cursor:
            try:
                cursor_id = UUID(request.cursor)
            except ValueError:
                logger.warning("Invalid cursor provided in tour listing", extra={"cursor": request.cursor})
            else:
                stmt = stmt.where(await self._after_cursor(cursor_id, sort_column, descending))

        if sort_column is None:
            stmt = stmt.order_by(Tour.id)
        else:
            stmt = stmt.order_by(sort_column.desc() if descending else sort_column, Tour.id)
        stmt = stmt.limit(request.limit + 1)

        result = await self.db.execute(stmt)
        tours = list(result.scalars())

        has_next_page = len(tours) > request.limit
        if has_next_page:
            tours = tours[:-1]
        next_cursor = str(tours[-1].id) if has_next_page and tours else None

        logger.info(
            "Tour listing completed",
            extra={
                "total_found": len(tours),
                "has_next_page": has_next_page,
                "keyword": request.keyword,
                "sort": request.sort.value
            }
        )

        return tours, next_cursor

    async def update_tour(self, request: UpdateTourRequest) -> Tour:
        """
        Update the fields present in the request.

        Sending ``trip_extras`` replaces every extra on the tour; add-ons
        already booked keep their recorded name and price.

        Raises:
            NotFoundError: If tour not found
            ConflictError: If another tour already uses the new slug or code
        """
        tour = await self.get_tour_by_id_or_raise(parse_resource_id(request.tour_id, "tour"))
        changes = request.model_dump(exclude_unset=True, exclude={"tour_id", "trip_extras"})

        slug = changes.get("slug") or tour.slug
        code = changes.get("code") or tour.code
        existing_tour = await self._find_conflicting_tour(slug, code, exclude_id=tour.id)
        if existing_tour:
            logger.warning(
                "Tour update failed - slug or code already exists",
                extra={"tour_id": str(tour.id), "slug": slug, "code": code, "existing_tour_id": str(existing_tour.id)}
            )
            raise self._conflict(slug, code, existing_tour)

        for field_name, value in changes.items():
            # Only overview may be cleared
            if value is not None or field_name == "overview":
                setattr(tour, field_name, value)

        if request.trip_extras is not None:
            tour.trip_extras = [
                TripExtra(type=extra.type.value, name=extra.name, price=extra.price, notes=extra.notes)
                for extra in request.trip_extras
            ]

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour update failed due to integrity constraint",
                extra={"tour_id": request.tour_id, "error": str(e)}
            )
            raise ConflictError(detail="Tour update failed due to constraint violation")

        logger.info(
            "Tour updated successfully",
            extra={"tour_id": str(tour.id), "changed_fields": sorted(request.model_fields_set - {"tour_id"})}
        )

        return await self.get_tour_by_id_or_raise(tour.id)

    async def delete_tour(self, tour_id: str) -> None:
        """
        Delete a tour that has never been booked, with its departures,
        room options and extras.

        Raises:
            NotFoundError: If tour not found
            ConflictError: If bookings reference the tour
        """
        tour = await self.get_tour_by_id_or_raise(parse_resource_id(tour_id, "tour"))

        booking_count = await self.db.scalar(
            select(func.count(Booking.id)).where(Booking.tour_id == tour.id)
        )
        if booking_count:
            raise ConflictError(
                detail="Tour has bookings; cancel its departures instead of deleting it",
                conflicting_resource={"id": str(tour.id), "bookings": booking_count}
            )

        await self.db.delete(tour)
        await self.db.commit()

        logger.info("Tour deleted", extra={"tour_id": str(tour.id), "slug": tour.slug})

    @staticmethod
    def _search_conditions(request: ListToursRequest) -> list:
        conditions = []
        if request.keyword:
            keyword = request.keyword.strip().lower()
            conditions.append(or_(*(
                func.lower(column).contains(keyword, autoescape=True)
                for column in (Tour.code, Tour.title, Tour.overview, Tour.start_location, Tour.end_location)
            )))
        if request.min_price is not None:
            conditions.append(Tour.price_from >= request.min_price)
        if request.max_price is not None:
            conditions.append(Tour.price_from <= request.max_price)
        if request.min_duration is not None:
            conditions.append(Tour.duration_days >= request.min_duration)
        if request.max_duration is not None:
            conditions.append(Tour.duration_days <= request.max_duration)
        return conditions

    async def _after_cursor(self, cursor_id: UUID, sort_column, descending: bool):
        if sort_column is None:
            return Tour.id > cursor_id

        cursor_value = await self.db.scalar(select(sort_column).where(Tour.id == cursor_id))
        if cursor_value is None:
            # Cursor tour was deleted; fall back to id order for the rest
            return Tour.id > cursor_id

        beyond = sort_column < cursor_value if descending else sort_column > cursor_value
        return or_(beyond, and_(sort_column == cursor_value, Tour.id > cursor_id))

    async def _find_conflicting_tour(self, slug: str, code: str, exclude_id: Optional[UUID] = None) -> Optional[Tour]:
        stmt = select(Tour).where(or_(Tour.slug == slug, Tour.code == code))
        if exclude_id is not None:
            stmt = stmt.where(Tour.id != exclude_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def _conflict(slug: str, code: str, existing_tour: Tour) -> ConflictError:
        field = "slug" if existing_tour.slug == slug else "code"
        value = slug if field == "slug" else code
        return ConflictError(
            detail=f"Tour with {field} '{value}' already exists",
            conflicting_resource={
                "id": str(existing_tour.id),
                "slug": existing_tour.slug,
                "code": existing_tour.code
            }
        )
