from decimal import Decimal
from typing import List
from sqlalchemy import JSON, Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from showsphere.db.base import Base
from showsphere.models import TimestampMixin, new_id


class Booking(Base, TimestampMixin):
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # no FK: a show removed outside this service must not block expiry
    show_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    booked_seats: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    payment_link: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    booking_token: Mapped[str] = mapped_column(
        String(40), nullable=False, unique=True, index=True)
