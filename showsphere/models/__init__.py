from datetime import datetime
from uuid import uuid4
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

from showsphere.core.timeutils import utc_now


def new_id() -> str:
    return uuid4().hex


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

from .Movie import Movie
from .Show import Show, SeatMap
from .user import User
from .booking import Booking
