import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.timeutils import as_utc, utc_now
from showsphere.crud.show import crud_show
from showsphere.crud.user import crud_user
from showsphere.services.notification import NotificationDispatcher


logger = logging.getLogger(__name__)


@dataclass
class ReminderResult:
    sent: int = 0
    failed: int = 0

    def __str__(self) -> str:
        if self.sent == 0 and self.failed == 0:
            return "No reminders to send."
        return f"Sent {self.sent} reminder(s), {self.failed} failed."


class ShowReminderScanner:
    """One reminder per seat holder for shows starting in (now + lead - window, now + lead]."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], dispatcher: NotificationDispatcher, lead_hours: int = 8, window_minutes: int = 10):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.lead = timedelta(hours=lead_hours)
        self.window = timedelta(minutes=window_minutes)

    async def run_once(self, now: Optional[datetime] = None) -> ReminderResult:
        now = now or utc_now()
        window_end = now + self.lead
        window_start = window_end - self.window

        tasks = []
        async with self.session_factory() as db:
            shows = await crud_show.get_shows_between(db, window_start, window_end)
            for show in shows:
                if show.movie is None or not show.occupied_seats:
                    continue
                holder_ids = set(show.occupied_seats.values())
                for user in await crud_user.get_users_by_ids(db, holder_ids):
                    tasks.append((user.email, user.name, show.movie.title, as_utc(show.show_date_time)))

        result = ReminderResult()
        for email, name, movie_title, show_time in tasks:
            if await self.dispatcher.show_reminder(email, name, movie_title, show_time):
                result.sent += 1
            else:
                result.failed += 1
        return result
