import asyncio
import logging
from datetime import datetime
from typing import Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.config import Settings
from showsphere.core.timeutils import as_utc
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.crud.user import crud_user
from showsphere.services.email import EmailService
from showsphere.services.notification import Notification, NotificationHandler, NotificationKind


logger = logging.getLogger(__name__)


def format_show_time(show_time: datetime, tz_name: str) -> Tuple[str, str]:
    """("Friday, March 7, 2025", "06:30 PM") in the display timezone."""
    local = as_utc(show_time).astimezone(ZoneInfo(tz_name))
    return f"{local:%A}, {local:%B} {local.day}, {local.year}", local.strftime("%I:%M %p")


class BookingMailer(NotificationHandler):
    """Turns notifications into emails. Every method returns False instead of raising when it declines."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], email_service: EmailService, settings: Settings):
        self.session_factory = session_factory
        self.email_service = email_service
        self.settings = settings

    async def handle(self, notification: Notification) -> bool:
        payload = notification.payload
        if notification.kind == NotificationKind.BOOKING_CONFIRMATION:
            return await self.send_booking_confirmation(payload.get("bookingId"))
        if notification.kind == NotificationKind.SHOW_ADDED:
            return await self.send_new_show_notifications(payload.get("movieTitle"))
        if notification.kind == NotificationKind.SHOW_REMINDER:
            return await self.send_show_reminder(
                payload.get("userEmail"),
                payload.get("userName"),
                payload.get("movieTitle"),
                datetime.fromisoformat(payload["showTime"]),
            )
        logger.warning(f"Unknown notification kind {notification.kind}")
        return False

    async def _is_paid(self, booking_id: str) -> bool:
        async with self.session_factory() as db:
            booking = await crud_booking.get_booking(db, booking_id)
            return booking is not None and booking.is_paid

    async def send_booking_confirmation(self, booking_id: str) -> bool:
        if not booking_id:
            logger.error("Booking confirmation requested without a booking id")
            return False

        async with self.session_factory() as db:
            booking = await crud_booking.get_booking(db, booking_id)
            if booking is None:
                logger.error(f"Booking not found for ID: {booking_id}")
                return False
            user = await crud_user.get_user(db, booking.user_id)
            show = await crud_show.get_show(db, booking.show_id)
            if user is None or show is None or show.movie is None:
                logger.error(f"Booking {booking_id} data incomplete: user={user is not None}, show={show is not None}")
                return False

        if not booking.is_paid:
            # the paid flag may not have landed yet when a webhook races the booking flow
            await asyncio.sleep(self.settings.PAYMENT_RECHECK_DELAY_SECONDS)
            if not await self._is_paid(booking_id):
                logger.error(f"Booking {booking_id} still not paid after retry. Email not sent.")
                return False

        show_date, show_time = format_show_time(show.show_date_time, self.settings.DISPLAY_TIMEZONE)
        html = self.email_service.render(
            "booking_confirmation.html",
            dict(
                user_name=user.name,
                movie_title=show.movie.title,
                show_date=show_date,
                show_time=show_time,
                seats=sorted(booking.booked_seats),
                ticket_count=len(booking.booked_seats),
                total_amount=f"{self.settings.CURRENCY_SYMBOL}{booking.amount:.2f}",
                booking_token=booking.booking_token,
            ),
        )
        subject = f"🎬 Booking Confirmed: \"{show.movie.title}\" - {booking.booking_token or 'Confirmation'}"
        return await self.email_service.send_email(user.email, subject, html)

    async def send_new_show_notifications(self, movie_title: str) -> bool:
        async with self.session_factory() as db:
            users = await crud_user.get_all_users(db)

        failed = 0
        for user in users:
            html = self.email_service.render(
                "new_show.html",
                dict(user_name=user.name, movie_title=movie_title, frontend_url=self.settings.FRONTEND_URL),
            )
            if not await self.email_service.send_email(user.email, f"🎬 New Show Added: {movie_title}", html):
                failed += 1
        logger.info(f"New show '{movie_title}' announced to {len(users) - failed}/{len(users)} user(s)")
        return failed == 0

    async def send_show_reminder(self, email: str, name: str, movie_title: str, show_time: datetime) -> bool:
        show_date, show_clock = format_show_time(show_time, self.settings.DISPLAY_TIMEZONE)
        html = self.email_service.render(
            "show_reminder.html",
            dict(
                user_name=name,
                movie_title=movie_title,
                show_date=show_date,
                show_time=show_clock,
                lead_hours=self.settings.REMINDER_LEAD_HOURS,
            ),
        )
        return await self.email_service.send_email(email, f"Reminder: Your movie \"{movie_title}\" starts soon!", html)
