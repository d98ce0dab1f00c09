from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from showsphere.models.Movie import Movie


class CRUDMovie:
    async def get_movie(self, db: AsyncSession, movie_id: str) -> Optional[Movie]:
        result = await db.execute(select(Movie).where(Movie.id == movie_id))
        return result.scalar_one_or_none()

    async def create_movie(self, db: AsyncSession, movie_id: str, title: str, **details) -> Movie:
        movie = Movie(id=movie_id, title=title, **details)
        db.add(movie)
        await db.flush()
        return movie


crud_movie = CRUDMovie()
