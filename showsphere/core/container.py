from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.config import Settings
from showsphere.services.booking import BookingService
from showsphere.services.catalog import CatalogService
from showsphere.services.email import EmailService
from showsphere.services.expiration import ExpirationReaper
from showsphere.services.mailer import BookingMailer
from showsphere.services.notification import DirectDelivery, NotificationDispatcher, QueuedDelivery
from showsphere.services.payment import StripePaymentGateway
from showsphere.services.payment_listener import PaymentConfirmationListener
from showsphere.services.reminders import ShowReminderScanner
from showsphere.services.scheduler import DelayedTaskQueue
from showsphere.services.user_sync import UserSyncListener


@dataclass
class Services:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    redis: Redis
    email_service: EmailService
    mailer: BookingMailer
    dispatcher: NotificationDispatcher
    expiry_queue: DelayedTaskQueue
    reaper: ExpirationReaper
    booking: BookingService
    catalog: CatalogService
    reminders: ShowReminderScanner
    payment_gateway: Optional[StripePaymentGateway] = None
    payment_listener: Optional[PaymentConfirmationListener] = None
    user_sync: Optional[UserSyncListener] = None


def build_services(
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        redis: Redis,
        payment_gateway: Optional[StripePaymentGateway] = None,
        email_service: Optional[EmailService] = None) -> Services:
    """
    Wire every client handle once. Without STRIPE_SECRET_KEY bookings are confirmed
    directly; a webhook secret alone still lets the listener verify inbound events.
    """
    if payment_gateway is None and settings.STRIPE_SECRET_KEY:
        payment_gateway = StripePaymentGateway(
            settings.STRIPE_SECRET_KEY,
            settings.STRIPE_WEBHOOK_SECRET,
            currency=settings.CURRENCY,
            timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
    webhook_gateway = payment_gateway
    if webhook_gateway is None and settings.STRIPE_WEBHOOK_SECRET:
        webhook_gateway = StripePaymentGateway(
            "", settings.STRIPE_WEBHOOK_SECRET, timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT_SECONDS)

    email_service = email_service or EmailService(settings)
    mailer = BookingMailer(session_factory, email_service, settings)
    dispatcher = NotificationDispatcher(
        [QueuedDelivery(redis, settings.NOTIFICATION_QUEUE_KEY), DirectDelivery(mailer)],
        timeout_seconds=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
    expiry_queue = DelayedTaskQueue(redis, settings.EXPIRY_QUEUE_KEY)
    reaper = ExpirationReaper(session_factory, expiry_queue, settings.BOOKING_HOLD_MINUTES)

    return Services(
        settings=settings,
        session_factory=session_factory,
        redis=redis,
        email_service=email_service,
        mailer=mailer,
        dispatcher=dispatcher,
        expiry_queue=expiry_queue,
        reaper=reaper,
        booking=BookingService(session_factory, settings, dispatcher, reaper, payment_gateway),
        catalog=CatalogService(session_factory, settings, dispatcher),
        reminders=ShowReminderScanner(
            session_factory, dispatcher, settings.REMINDER_LEAD_HOURS, settings.REMINDER_WINDOW_MINUTES),
        payment_gateway=payment_gateway,
        payment_listener=PaymentConfirmationListener(
            session_factory, webhook_gateway, dispatcher) if webhook_gateway else None,
        user_sync=UserSyncListener(
            session_factory, settings.IDENTITY_WEBHOOK_SECRET) if settings.IDENTITY_WEBHOOK_SECRET else None,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
