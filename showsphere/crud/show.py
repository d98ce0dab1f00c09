from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from showsphere.core.exceptions import ShowNotFoundError
from showsphere.models.Movie import Movie
from showsphere.models.Show import Show


class CRUDShow:
    async def get_show(self, db: AsyncSession, show_id: str, for_update: bool = False) -> Optional[Show]:
        stmt = select(Show).where(Show.id == show_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_shows_by_ids(self, db: AsyncSession, show_ids: Iterable[str]):
        ids = list(show_ids)
        if not ids:
            return []
        result = await db.execute(select(Show).where(Show.id.in_(ids)))
        return result.scalars().all()

    async def get_occupied_seats(self, db: AsyncSession, show_id: str) -> List[str]:
        show = await self.get_show(db, show_id)
        if show is None:
            raise ShowNotFoundError()
        return list((show.occupied_seats or {}).keys())

    async def get_upcoming_shows(self, db: AsyncSession, now: datetime):
        result = await db.execute(
            select(Show)
            .where(Show.show_date_time >= now)
            .order_by(Show.show_date_time)
        )
        return result.scalars().all()

    async def get_shows_between(self, db: AsyncSession, start: datetime, end: datetime):
        """Shows starting in the half-open window (start, end]."""
        result = await db.execute(
            select(Show)
            .where(Show.show_date_time > start)
            .where(Show.show_date_time <= end)
        )
        return result.scalars().all()

    async def create_shows(self, db: AsyncSession, movie: Movie, show_times: List[datetime], show_price: Decimal):
        shows = [
            Show(movie=movie, show_date_time=show_time, show_price=show_price, occupied_seats={})
            for show_time in show_times
        ]
        db.add_all(shows)
        await db.commit()
        return shows


crud_show = CRUDShow()
