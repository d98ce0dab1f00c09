import pytest

from showsphere.core.exceptions import WebhookSignatureError
from showsphere.crud.booking import crud_booking
from showsphere.services.notification import Notification, NotificationKind

ORIGIN = "http://localhost:5173"


@pytest.fixture
async def unpaid_booking_id(paid_services, seeded_test_data):
    result = await paid_services.booking.create_booking("user_1", seeded_test_data["show_id"], ["A1", "A2"], ORIGIN)
    return result.booking_id


@pytest.mark.asyncio
async def test_checkout_completed_marks_booking_paid(paid_services, db_session_factory, redis_client, signed_event, unpaid_booking_id):
    payload, headers = signed_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": unpaid_booking_id},
    })

    response = await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"])

    assert response == {"received": True}
    async with db_session_factory() as db:
        booking = await crud_booking.get_booking(db, unpaid_booking_id)
    assert booking.is_paid is True
    assert booking.payment_link == ""

    queued = await redis_client.lrange(paid_services.settings.NOTIFICATION_QUEUE_KEY, 0, -1)
    notification = Notification.from_json(queued[0])
    assert notification.kind == NotificationKind.BOOKING_CONFIRMATION
    assert notification.payload == {"bookingId": unpaid_booking_id}


@pytest.mark.asyncio
async def test_payment_intent_succeeded_resolves_booking_through_checkout_session(paid_services, payment_gateway, db_session_factory, signed_event, unpaid_booking_id):
    payment_gateway.payment_intents["pi_test_1"] = unpaid_booking_id
    payload, headers = signed_event("payment_intent.succeeded", {"id": "pi_test_1", "object": "payment_intent"})

    assert await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"]) == {"received": True}

    async with db_session_factory() as db:
        assert (await crud_booking.get_booking(db, unpaid_booking_id)).is_paid is True


@pytest.mark.asyncio
async def test_replayed_event_is_harmless(paid_services, payment_gateway, db_session_factory, redis_client, signed_event, unpaid_booking_id):
    payload, headers = signed_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": unpaid_booking_id},
    })
    payment_gateway.payment_intents["pi_test_1"] = unpaid_booking_id
    intent_payload, intent_headers = signed_event("payment_intent.succeeded", {"id": "pi_test_1", "object": "payment_intent"})

    # one checkout produces both events, and the provider retries deliveries
    for body, signature in [
            (payload, headers["Stripe-Signature"]),
            (intent_payload, intent_headers["Stripe-Signature"]),
            (payload, headers["Stripe-Signature"])]:
        assert await paid_services.payment_listener.handle(body.encode(), signature) == {"received": True}

    async with db_session_factory() as db:
        assert (await crud_booking.get_booking(db, unpaid_booking_id)).is_paid is True
    assert await redis_client.llen(paid_services.settings.NOTIFICATION_QUEUE_KEY) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payment_status", ["unpaid", None])
async def test_checkout_completed_without_settled_payment_keeps_booking_unpaid(paid_services, db_session_factory, redis_client, signed_event, unpaid_booking_id, payment_status):
    payload, headers = signed_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": payment_status,
        "metadata": {"bookingId": unpaid_booking_id},
    })

    assert await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"]) == {"received": True}

    async with db_session_factory() as db:
        assert (await crud_booking.get_booking(db, unpaid_booking_id)).is_paid is False
    assert await redis_client.llen(paid_services.settings.NOTIFICATION_QUEUE_KEY) == 0

    # the delayed payment settling later confirms the booking
    payload, headers = signed_event("checkout.session.async_payment_succeeded", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": unpaid_booking_id},
    })
    assert await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"]) == {"received": True}

    async with db_session_factory() as db:
        assert (await crud_booking.get_booking(db, unpaid_booking_id)).is_paid is True
    assert await redis_client.llen(paid_services.settings.NOTIFICATION_QUEUE_KEY) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("signature", [None, "", "t=1700000000,v1=deadbeef"])
async def test_bad_signature_changes_nothing(paid_services, db_session_factory, signed_event, unpaid_booking_id, signature):
    payload, _ = signed_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": unpaid_booking_id},
    })

    with pytest.raises(WebhookSignatureError):
        await paid_services.payment_listener.handle(payload.encode(), signature)

    async with db_session_factory() as db:
        assert (await crud_booking.get_booking(db, unpaid_booking_id)).is_paid is False


@pytest.mark.asyncio
async def test_signature_from_another_secret_is_rejected(paid_services, signed_event, unpaid_booking_id):
    payload, headers = signed_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": unpaid_booking_id},
    }, secret="whsec_someone_else")

    with pytest.raises(WebhookSignatureError):
        await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"])


@pytest.mark.asyncio
async def test_unknown_booking_and_unhandled_events_are_acknowledged(paid_services, redis_client, signed_event):
    payload, headers = signed_event("checkout.session.completed", {
        "id": "cs_test_9",
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"bookingId": "does-not-exist"},
    })
    assert await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"]) == {"received": True}

    payload, headers = signed_event("charge.refunded", {"id": "ch_test_1", "object": "charge"})
    assert await paid_services.payment_listener.handle(payload.encode(), headers["Stripe-Signature"]) == {"received": True}

    assert await redis_client.llen(paid_services.settings.NOTIFICATION_QUEUE_KEY) == 0
