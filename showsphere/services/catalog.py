import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.config import Settings
from showsphere.core.exceptions import InvalidInputError, ShowNotFoundError
from showsphere.core.timeutils import utc_now
from showsphere.crud.movie import crud_movie
from showsphere.crud.show import crud_show
from showsphere.schemas.show import ShowInput
from showsphere.services.notification import Notification, NotificationDispatcher


logger = logging.getLogger(__name__)


def parse_show_times(shows_input: List[ShowInput], tz_name: str) -> List[datetime]:
    """Expand [{date, time: [...]}] into UTC datetimes. Times without an offset are read in tz_name."""
    local_tz = ZoneInfo(tz_name)
    show_times = []
    for show in shows_input:
        for time in show.time:
            try:
                value = datetime.fromisoformat(f"{show.date}T{time}")
            except ValueError:
                raise InvalidInputError(f"Invalid show date/time: {show.date} {time}")
            if value.tzinfo is None:
                value = value.replace(tzinfo=local_tz)
            show_times.append(value.astimezone(timezone.utc))
    return show_times


class CatalogService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings, dispatcher: NotificationDispatcher):
        self.session_factory = session_factory
        self.settings = settings
        self.dispatcher = dispatcher

    async def add_shows(self, movie_id: Optional[str], movie_title: Optional[str], shows_input: Optional[List[ShowInput]], show_price: Optional[Decimal]):
        if not movie_id:
            raise InvalidInputError("Movie ID is required")
        if not shows_input:
            raise InvalidInputError("Shows input is required and must be a non-empty array")
        if show_price is None or show_price <= 0:
            raise InvalidInputError("Valid show price is required")

        show_times = parse_show_times(shows_input, self.settings.DISPLAY_TIMEZONE)
        if not show_times:
            raise InvalidInputError("At least one show time is required")

        async with self.session_factory() as db:
            movie = await crud_movie.get_movie(db, movie_id)
            if movie is None:
                if not movie_title:
                    raise InvalidInputError("Movie title is required for a new movie")
                movie = await crud_movie.create_movie(db, movie_id, movie_title)
                logger.info(f"Movie {movie_id} '{movie_title}' added to the catalog")
            shows = await crud_show.create_shows(db, movie, show_times, show_price)
            title = movie.title

        logger.info(f"Added {len(shows)} show(s) for movie {movie_id}")
        self.dispatcher.dispatch_in_background(Notification.show_added(title))
        return shows

    async def get_upcoming_shows(self):
        async with self.session_factory() as db:
            return await crud_show.get_upcoming_shows(db, utc_now())

    async def get_show(self, show_id: str):
        async with self.session_factory() as db:
            show = await crud_show.get_show(db, show_id)
        if show is None:
            raise ShowNotFoundError()
        return show
