from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import Mapped, mapped_column, relationship
from showsphere.db.base import Base
from showsphere.models import TimestampMixin, new_id
from showsphere.models.Movie import Movie

# seat id ("A3") -> id of the user holding it; a missing key means the seat is free
SeatMap = Dict[str, str]


class Show(Base, TimestampMixin):
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    movie_id: Mapped[str] = mapped_column(String(64), ForeignKey(
        "movie.id", ondelete="CASCADE"), nullable=False, index=True)
    show_date_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    show_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    occupied_seats: Mapped[SeatMap] = mapped_column(
        MutableDict.as_mutable(JSON), nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    movie: Mapped[Movie] = relationship(lazy="selectin")

    # every seat-map write is checked against the version that was read
    __mapper_args__ = {"version_id_col": version}
