import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from showsphere.core.config import Settings
from showsphere.core.exceptions import (
    InternalError,
    InvalidInputError,
    InvalidStateError,
    MovieNotFoundError,
    SeatsUnavailableError,
    ShowNotFoundError,
    UnauthenticatedError,
)
from showsphere.core.timeutils import utc_now
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.models.booking import Booking
from showsphere.services.availability import availability_checker
from showsphere.services.expiration import ExpirationReaper
from showsphere.services.notification import Notification, NotificationDispatcher
from showsphere.services.payment import StripePaymentGateway
from showsphere.services.seat_map import normalize_seats, occupy, taken_seats


logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_uppercase
CENTS = Decimal("0.01")


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def generate_booking_token() -> str:
    """BK-<base36 epoch millis>-<6 random base36 chars>, e.g. BK-M1X2Y3Z4-AB12CD."""
    suffix = "".join(secrets.choice(BASE36) for _ in range(6))
    return f"BK-{to_base36(int(time.time() * 1000))}-{suffix}"


@dataclass
class BookingResult:
    booking_id: str
    url: str


class BookingService:
    def __init__(
            self,
            session_factory: async_sessionmaker[AsyncSession],
            settings: Settings,
            dispatcher: NotificationDispatcher,
            reaper: ExpirationReaper,
            payment_gateway: Optional[StripePaymentGateway] = None):
        self.session_factory = session_factory
        self.settings = settings
        self.dispatcher = dispatcher
        self.reaper = reaper
        self.payment_gateway = payment_gateway

    async def _unique_token(self, db: AsyncSession) -> str:
        token = generate_booking_token()
        while await crud_booking.token_exists(db, token):
            token = generate_booking_token()
        return token

    async def _reserve(self, user_id: str, show_id: str, seats: List[str]) -> Tuple[Booking, str]:
        """
        Create the unpaid booking and hold its seats in one transaction.
        The show row is version checked, so a concurrent writer makes this fail with nothing reserved.
        """
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    show = await crud_show.get_show(db, show_id, for_update=True)
                    if show is None:
                        raise ShowNotFoundError()
                    if show.movie is None:
                        raise MovieNotFoundError()
                    if taken_seats(show.occupied_seats, seats):
                        raise SeatsUnavailableError()

                    price = Decimal(show.show_price or 0)
                    if price <= 0:
                        logger.error(f"Show {show_id} has no valid price: {show.show_price}")
                        raise InvalidStateError("Show price is not set or invalid. Please contact support.")
                    amount = (price * len(seats)).quantize(CENTS)

                    booking = Booking(
                        user_id=user_id,
                        show_id=show_id,
                        amount=amount,
                        booked_seats=seats,
                        is_paid=False,
                        payment_link="",
                        booking_token=await self._unique_token(db),
                    )
                    db.add(booking)
                    show.occupied_seats = occupy(show.occupied_seats, seats, user_id)
                    movie_title = show.movie.title
        except StaleDataError:
            logger.warning(f"Concurrent update on show {show_id}, seats {seats} rejected")
            raise SeatsUnavailableError()
        except SQLAlchemyError as e:
            logger.error(f"Booking creation failed for show {show_id}: {e}", exc_info=True)
            raise InternalError()
        return booking, movie_title

    async def create_booking(self, user_id: Optional[str], show_id: Optional[str], seats, origin: str) -> BookingResult:
        if not user_id:
            raise UnauthenticatedError()
        if not show_id:
            raise InvalidInputError("Show ID is required")
        seats = normalize_seats(seats, self.settings.MAX_SEATS_PER_BOOKING)

        async with self.session_factory() as db:
            if not await availability_checker.is_available(db, show_id, seats):
                raise SeatsUnavailableError()

        booking, movie_title = await self._reserve(user_id, show_id, seats)
        logger.info(f"Booking {booking.id} ({booking.booking_token}) holds {seats} on show {show_id}")

        if self.payment_gateway is None:
            return await self._confirm_without_payment(booking, origin)

        try:
            await self.reaper.schedule_expiry_check(booking.id, booking.created_at)
        except Exception as e:
            logger.error(f"Could not schedule expiry check for booking {booking.id}: {e}", exc_info=True)

        session = await self.payment_gateway.create_checkout_session(
            booking_id=booking.id,
            amount=booking.amount,
            product_name=movie_title,
            success_url=f"{origin}/loading/my-bookings",
            cancel_url=f"{origin}/my-bookings",
            expires_at=utc_now() + timedelta(minutes=self.settings.CHECKOUT_SESSION_EXPIRY_MINUTES),
        )
        if not session.url:
            logger.error(f"Checkout session {session.id} for booking {booking.id} has no url")
            raise InvalidStateError("Payment session URL not generated")

        async with self.session_factory() as db:
            await crud_booking.set_payment_link(db, booking.id, session.url)
        return BookingResult(booking_id=booking.id, url=session.url)

    async def _confirm_without_payment(self, booking: Booking, origin: str) -> BookingResult:
        async with self.session_factory() as db:
            await crud_booking.mark_paid(db, booking.id)
        booking.is_paid = True
        logger.info(f"No payment provider configured, booking {booking.id} confirmed directly")

        self.dispatcher.dispatch_in_background(Notification.booking_confirmation(booking.id))
        query = urlencode({"success": "true", "message": "Booking confirmed successfully!"})
        return BookingResult(booking_id=booking.id, url=f"{origin}/loading/my-bookings?{query}")
