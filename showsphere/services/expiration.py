import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.timeutils import as_utc, utc_now
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.services.scheduler import DelayedTaskQueue
from showsphere.services.seat_map import release


logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    cleaned: int = 0
    errors: int = 0

    @property
    def message(self) -> str:
        return f"Cleaned up {self.cleaned} expired booking(s), {self.errors} error(s)"

    def __str__(self) -> str:
        return self.message


class ExpirationReaper:
    """
    Releases the seats of bookings left unpaid past the hold window and deletes them.

    Two triggers reach the same expire_if_unpaid operation: a delayed check
    scheduled per booking, and a periodic sweep over all stale unpaid bookings.
    Paid bookings are never touched by either.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], expiry_queue: Optional[DelayedTaskQueue], hold_minutes: int = 10):
        self.session_factory = session_factory
        self.expiry_queue = expiry_queue
        self.hold = timedelta(minutes=hold_minutes)

    def deadline_for(self, created_at: datetime) -> datetime:
        return as_utc(created_at) + self.hold

    async def schedule_expiry_check(self, booking_id: str, created_at: datetime) -> None:
        if self.expiry_queue is None:
            logger.warning(f"No expiry queue configured, booking {booking_id} relies on the sweep")
            return
        run_at = self.deadline_for(created_at)
        await self.expiry_queue.schedule(booking_id, run_at)
        logger.info(f"Expiry check for booking {booking_id} scheduled at {run_at.isoformat()}")

    async def expire_if_unpaid(self, booking_id: str, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        async with self.session_factory() as db:
            async with db.begin():
                # paid status is re-read in the same transaction that mutates
                booking = await crud_booking.get_booking(db, booking_id, for_update=True)
                if booking is None:
                    logger.debug(f"Booking {booking_id} already deleted")
                    return False
                if booking.is_paid:
                    logger.debug(f"Booking {booking_id} is paid, keeping it")
                    return False
                if self.deadline_for(booking.created_at) > now:
                    return False

                show = await crud_show.get_show(db, booking.show_id, for_update=True)
                released = []
                if show is not None:
                    updated, released = release(show.occupied_seats, booking.booked_seats, booking.user_id)
                    if released:
                        show.occupied_seats = updated
                await db.delete(booking)
        logger.info(f"Booking {booking_id} cancelled and seats released: {released}")
        return True

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or utc_now()
        async with self.session_factory() as db:
            expired_ids = await crud_booking.get_expired_unpaid_ids(db, now - self.hold)

        result = SweepResult()
        for booking_id in expired_ids:
            try:
                if await self.expire_if_unpaid(booking_id, now):
                    result.cleaned += 1
            except Exception as e:
                logger.error(f"Error cleaning up booking {booking_id}: {e}", exc_info=True)
                result.errors += 1
        return result
