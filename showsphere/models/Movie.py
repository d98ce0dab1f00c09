from typing import Optional
from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from showsphere.db.base import Base
from showsphere.models import TimestampMixin


class Movie(Base, TimestampMixin):
    # provider id (TMDB)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    overview: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    poster_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    release_date: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    runtime: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    vote_average: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
