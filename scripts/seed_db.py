#!/usr/bin/env python3
"""Create the schema and load a sample tour for local development."""

import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from tourshop.core.database import async_session_factory, close_db, init_db
from tourshop.models import DepartureStatus, TripExtraType
from tourshop.schemas.departure import CreateDepartureRequest
from tourshop.schemas.room_option import CreateRoomOptionRequest
from tourshop.schemas.tour import CreateTourRequest, TripExtraInput
from tourshop.services.departure_service import DepartureService
from tourshop.services.room_option_service import RoomOptionService
from tourshop.services.tour_service import TourService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_SLUG = "south-island-explorer"


def run_migrations() -> None:
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create one tour with extras, room options and a season of departures."""
    async with async_session_factory() as db:
        tour_service = TourService(db)
        if await tour_service.get_tour_by_slug(SAMPLE_SLUG):
            logger.info("Sample data already exists, skipping...")
            return

        tour = await tour_service.create_tour(CreateTourRequest(
            code="SIE10",
            slug=SAMPLE_SLUG,
            title="South Island Explorer",
            start_location="Christchurch",
            end_location="Queenstown",
            duration_days=10,
            max_group_size=16,
            price_from=289900,
            currency="NZD",
            overview="Glaciers, fiords and alpine passes in ten days.",
            trip_extras=[
                TripExtraInput(type=TripExtraType.KITTY, name="Group kitty", price=15000,
                               notes="Shared meals and park fees, paid by every traveller"),
                TripExtraInput(type=TripExtraType.OPTIONAL_ACTIVITY, name="Milford Sound cruise", price=12900),
                TripExtraInput(type=TripExtraType.OTHER, name="Extra night in Queenstown", price=18000),
            ],
        ))

        room_options = RoomOptionService(db)
        await room_options.create_room_option(CreateRoomOptionRequest(
            tour_id=str(tour.id), room_type="Twin Share", price_add=0, is_default=True
        ))
        await room_options.create_room_option(CreateRoomOptionRequest(
            tour_id=str(tour.id), room_type="Single", price_add=65000
        ))

        departures = DepartureService(db)
        first = date.today() + timedelta(days=45)
        for week in range(6):
            starts = first + timedelta(weeks=week * 2)
            await departures.create_departure(CreateDepartureRequest(
                tour_id=str(tour.id),
                departure_date=starts,
                end_date=starts + timedelta(days=9),
                discounted_price=259900 if week == 0 else None,
                available_spaces=16 if week else 4,
                status=DepartureStatus.CANCELLED if week == 5 else None,
            ))

        logger.info("Sample data created", extra={"tour_id": str(tour.id)})


async def seed(create_tables: bool) -> None:
    try:
        if create_tables:
            await init_db()
        await create_sample_data()
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--migrate", action="store_true", help="Run Alembic migrations instead of create_all")
    args = parser.parse_args()

    if args.migrate:
        run_migrations()
    asyncio.run(seed(create_tables=not args.migrate))

    logger.info("Setup completed. Start the API with: cd server && uvicorn tourshop.main:app --reload")


if __name__ == "__main__":
    main()
