import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.exceptions import InternalError
from showsphere.crud.booking import crud_booking
from showsphere.services.notification import NotificationDispatcher
from showsphere.services.payment import StripePaymentGateway, get_field


logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
CHECKOUT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
CHECKOUT_EVENTS = (CHECKOUT_SESSION_COMPLETED, CHECKOUT_ASYNC_PAYMENT_SUCCEEDED)
HANDLED_EVENTS = (PAYMENT_INTENT_SUCCEEDED,) + CHECKOUT_EVENTS
# a completed checkout can still be waiting on a delayed payment method
SETTLED_PAYMENT_STATUSES = ("paid", "no_payment_required")


class PaymentConfirmationListener:
    """
    Reconciles signed payment events with bookings.

    Signature failures raise WebhookSignatureError before any state changes.
    Events that cannot be matched to a booking are logged and acknowledged so
    the provider stops retrying them.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], payment_gateway: StripePaymentGateway, dispatcher: NotificationDispatcher):
        self.session_factory = session_factory
        self.payment_gateway = payment_gateway
        self.dispatcher = dispatcher

    async def _resolve_booking_id(self, event_type: str, obj) -> Optional[str]:
        if event_type in CHECKOUT_EVENTS:
            return get_field(get_field(obj, "metadata"), "bookingId")
        payment_intent_id = get_field(obj, "id")
        if not payment_intent_id:
            return None
        return await self.payment_gateway.find_booking_id_for_payment_intent(payment_intent_id)

    async def handle(self, payload: bytes, signature: Optional[str]) -> dict:
        event = self.payment_gateway.construct_event(payload, signature)
        event_type = get_field(event, "type")
        logger.info(f"Received payment event: {event_type} (id: {get_field(event, 'id')})")

        if event_type not in HANDLED_EVENTS:
            logger.info(f"Unhandled event type: {event_type}")
            return {"received": True}

        obj = get_field(get_field(event, "data"), "object")
        payment_status = get_field(obj, "payment_status")
        if event_type in CHECKOUT_EVENTS and payment_status not in SETTLED_PAYMENT_STATUSES:
            logger.info(
                f"Checkout session {get_field(obj, 'id')} has payment_status {payment_status!r}, "
                f"booking stays unpaid")
            return {"received": True}

        booking_id =await self._resolve_booking_id(event_type, obj)
        if not booking_id:
            logger.error("No bookingId found in session metadata")
            return {"received": True}

        try:
            async with self.session_factory() as db:
                updated = await crud_booking.mark_paid(db, booking_id)
                exists = updated or await crud_booking.get_booking(db, booking_id) is not None
        except SQLAlchemyError as e:
            logger.error(f"Marking booking {booking_id} paid failed: {e}", exc_info=True)
            raise InternalError("Internal Server Error")

        if not exists:
            logger.error(f"Booking not found: {booking_id}")
            return {"received": True}
        if not updated:
            logger.info(f"Booking {booking_id} is already paid, {event_type} acknowledged")
            return {"received": True}

        logger.info(f"Payment successful for booking: {booking_id}")
        # dispatch never raises, the payment is already recorded
        await self.dispatcher.booking_confirmed(booking_id)
        return {"received": True}
