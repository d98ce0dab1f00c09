from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select, update

from showsphere.models.booking import Booking


class CRUDBooking:
    async def get_booking(self, db: AsyncSession, booking_id: str, for_update: bool = False) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def token_exists(self, db: AsyncSession, booking_token: str) -> bool:
        result = await db.execute(select(Booking.id).where(Booking.booking_token == booking_token))
        return result.first() is not None

    async def get_user_bookings(self, db: AsyncSession, user_id: str):
        result = await db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return result.scalars().all()

    async def get_all_bookings(self, db: AsyncSession):
        result = await db.execute(select(Booking).order_by(Booking.created_at.desc()))
        return result.scalars().all()

    async def get_paid_totals(self, db: AsyncSession) -> Tuple[int, Decimal]:
        """(number of paid bookings, sum of their amounts)."""
        result = await db.execute(
            select(func.count(Booking.id), func.coalesce(func.sum(Booking.amount), 0))
            .where(Booking.is_paid.is_(True))
        )
        count, revenue = result.one()
        return count, Decimal(revenue)

    async def mark_paid(self, db: AsyncSession, booking_id: str) -> bool:
        """Flip an unpaid booking to paid and clear its payment link. False when nothing changed."""
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.is_paid.is_(False))
            .values(is_paid=True, payment_link="")
        )
        await db.commit()
        return result.rowcount > 0

    async def set_payment_link(self, db: AsyncSession, booking_id: str, payment_link: str) -> bool:
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.is_paid.is_(False))
            .values(payment_link=payment_link)
        )
        await db.commit()
        return result.rowcount > 0

    async def get_expired_unpaid_ids(self, db: AsyncSession, cutoff: datetime) -> List[str]:
        # paid bookings are never selected here
        result = await db.execute(
            select(Booking.id)
            .where(Booking.is_paid.is_(False))
            .where(Booking.created_at < cutoff)
            .order_by(Booking.created_at)
        )
        return list(result.scalars().all())


crud_booking = CRUDBooking()
