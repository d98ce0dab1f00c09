import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse

from showsphere.core.container import Services, get_services
from showsphere.core.exceptions import WebhookSignatureError


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(
        request: Request,
        stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
        services: Services = Depends(get_services)):
    """
    Payment provider callback. Must read the raw body: signature verification
    fails on a re-serialized payload.
    """
    if services.payment_listener is None:
        logger.error("Received a payment event but STRIPE_WEBHOOK_SECRET is not configured")
        return PlainTextResponse("Webhook Error: webhook secret not configured", status_code=400)

    payload = await request.body()
    try:
        return await services.payment_listener.handle(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected payment event: {e}")
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)


@router.post("/users/sync")
async def identity_webhook(
        request: Request,
        svix_id: Optional[str] = Header(default=None, alias="svix-id"),
        svix_timestamp: Optional[str] = Header(default=None, alias="svix-timestamp"),
        svix_signature: Optional[str] = Header(default=None, alias="svix-signature"),
        services: Services = Depends(get_services)):
    """Identity-provider user events: created, updated and deleted users."""
    if services.user_sync is None:
        logger.error("Received a user event but IDENTITY_WEBHOOK_SECRET is not configured")
        return PlainTextResponse("Webhook Error: webhook secret not configured", status_code=400)

    payload = await request.body()
    try:
        return await services.user_sync.handle(payload, svix_id, svix_timestamp, svix_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected user event: {e}")
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)
