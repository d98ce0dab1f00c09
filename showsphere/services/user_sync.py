import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showsphere.core.exceptions import InternalError, WebhookSignatureError
from showsphere.crud.user import crud_user


logger = logging.getLogger(__name__)

USER_CREATED = "user.created"
USER_UPDATED = "user.updated"
USER_DELETED = "user.deleted"
SIGNATURE_TOLERANCE_SECONDS = 300


def verify_signature(payload: bytes, message_id: Optional[str], timestamp: Optional[str], signature: Optional[str], secret: str, now: Optional[float] = None) -> None:
    """
    Verify an identity-provider webhook (svix scheme: HMAC-SHA256 over "id.timestamp.body",
    base64 encoded, sent as space separated "v1,<sig>" entries).
    """
    if not message_id or not timestamp or not signature:
        raise WebhookSignatureError("Missing signature headers")
    try:
        sent_at = int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Invalid signature timestamp")
    now = time.time() if now is None else now
    if abs(now - sent_at) > SIGNATURE_TOLERANCE_SECONDS:
        raise WebhookSignatureError("Signature timestamp outside the tolerance window")

    try:
        key = base64.b64decode(secret.removeprefix("whsec_"))
    except (binascii.Error, ValueError):
        raise WebhookSignatureError("Webhook secret is not valid base64")
    signed = f"{message_id}.{timestamp}.".encode() + payload
    expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode()

    for entry in signature.split():
        version, _, value = entry.partition(",")
        if version == "v1" and hmac.compare_digest(expected, value):
            return
    raise WebhookSignatureError("No matching signature found")


def primary_email(data: dict) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


def display_name(data: dict, email: str) -> str:
    name = " ".join(part for part in (data.get("first_name"), data.get("last_name")) if part)
    return name or email.split("@")[0]


class UserSyncListener:
    """
    Keeps the local user table in step with the identity provider, which is the
    source of truth for users. Every verified event is acknowledged so the
    provider stops retrying it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], webhook_secret: str):
        self.session_factory = session_factory
        self.webhook_secret = webhook_secret

    async def handle(self, payload: bytes, message_id: Optional[str], timestamp: Optional[str], signature: Optional[str]) -> dict:
        verify_signature(payload, message_id, timestamp, signature, self.webhook_secret)
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            raise WebhookSignatureError("Invalid JSON payload")

        event_type = event.get("type")
        data = event.get("data") or {}
        user_id = data.get("id")
        logger.info(f"Received identity event: {event_type} (id: {message_id})")

        if event_type not in (USER_CREATED, USER_UPDATED, USER_DELETED):
            logger.info(f"Unhandled event type: {event_type}")
            return {"received": True}
        if not user_id:
            logger.error(f"{event_type} event {message_id} has no user id")
            return {"received": True}

        try:
            async with self.session_factory() as db:
                if event_type == USER_DELETED:
                    if await crud_user.delete_user(db, user_id):
                        logger.info(f"User {user_id} deleted")
                    else:
                        logger.info(f"User {user_id} was already gone")
                    return {"received": True}

                email = primary_email(data)
                if not email:
                    logger.error(f"{event_type} for user {user_id} carries no email address, skipped")
                    return {"received": True}
                await crud_user.upsert_user(db, user_id, display_name(data, email), email, data.get("image_url"))
        except SQLAlchemyError as e:
            logger.error(f"Syncing user {user_id} failed: {e}", exc_info=True)
            raise InternalError("Internal Server Error")

        logger.info(f"User {user_id} synced from {event_type}")
        return {"received": True}
