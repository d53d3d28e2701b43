import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..db.session import Database
from ..services import booking_service

logger = logging.getLogger(__name__)


def complete_past_bookings(database: Database) -> None:
    with database.session() as db:
        completed = booking_service.complete_past_bookings(db)
        if completed:
            logger.info("Completed past bookings", extra={"count": completed})


def get_scheduler(database: Database) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(complete_past_bookings, "interval", minutes=15, args=[database])
    return scheduler
