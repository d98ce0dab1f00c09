import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import stripe

from showsphere.core.exceptions import ConfigError, UpstreamError, WebhookSignatureError


logger = logging.getLogger(__name__)

KEY_PREFIXES = ("sk_test_", "sk_live_")

# env may carry either a symbol or an ISO code
CURRENCY_CODES = {
    "₹": "inr",
    "inr": "inr",
    "$": "usd",
    "usd": "usd",
    "€": "eur",
    "eur": "eur",
    "£": "gbp",
    "gbp": "gbp",
}


def resolve_currency(value: Optional[str]) -> str:
    return CURRENCY_CODES.get((value or "").strip().lower(), "inr")


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def get_field(obj: Any, name: str) -> Any:
    """Item lookup that works for StripeObject and plain dicts alike."""
    if obj is None:
        return None
    try:
        return obj[name]
    except (KeyError, TypeError):
        return None


@dataclass
class CheckoutSession:
    id: str
    url: str


class StripePaymentGateway:
    """Hosted checkout sessions and webhook verification against Stripe."""

    def __init__(self, secret_key: str, webhook_secret: str, currency: str = "inr", timeout_seconds: float = 15.0):
        self.secret_key = (secret_key or "").strip()
        self.webhook_secret = webhook_secret
        self.currency = resolve_currency(currency)
        self.timeout_seconds = timeout_seconds

    def validate_credentials(self) -> None:
        if not self.secret_key.startswith(KEY_PREFIXES):
            logger.error("Invalid Stripe API key format. Key should start with sk_test_ or sk_live_")
            raise ConfigError("Invalid Stripe API key format. Please check your environment variables.")

    async def _call(self, func, **params):
        return await asyncio.wait_for(
            asyncio.to_thread(func, api_key=self.secret_key, **params),
            timeout=self.timeout_seconds
        )

    async def create_checkout_session(
            self,
            booking_id: str,
            amount: Decimal,
            product_name: str,
            success_url: str,
            cancel_url: str,
            expires_at: datetime) -> CheckoutSession:
        self.validate_credentials()
        line_items = [{
            "price_data": {
                "currency": self.currency,
                "product_data": {"name": product_name},
                "unit_amount": to_minor_units(amount),
            },
            "quantity": 1,
        }]
        try:
            session = await self._call(
                stripe.checkout.Session.create,
                success_url=success_url,
                cancel_url=cancel_url,
                line_items=line_items,
                mode="payment",
                metadata={"bookingId": booking_id},
                expires_at=int(expires_at.timestamp()),
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe checkout session creation timed out for booking {booking_id}")
            raise UpstreamError()
        except stripe.AuthenticationError as e:
            logger.error(f"Stripe authentication failed: {e}")
            raise UpstreamError("Invalid Stripe API key. Please check your environment variables.")
        except stripe.StripeError as e:
            logger.error(f"Stripe API error for booking {booking_id}: {e}", exc_info=True)
            message = getattr(e, "user_message", None) or str(e)
            raise UpstreamError(f"Payment error: {message}" if message else "Payment gateway error. Please try again.")
        return CheckoutSession(id=get_field(session, "id"), url=get_field(session, "url"))

    def construct_event(self, payload: bytes, signature: Optional[str]):
        if not signature:
            raise WebhookSignatureError("No signatures found matching the expected signature for payload")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e))

    async def find_booking_id_for_payment_intent(self, payment_intent_id: str) -> Optional[str]:
        try:
            sessions = await self._call(stripe.checkout.Session.list, payment_intent=payment_intent_id)
        except (asyncio.TimeoutError, stripe.StripeError) as e:
            logger.error(f"Checkout session lookup for {payment_intent_id} failed: {e!r}")
            raise UpstreamError()
        data = get_field(sessions, "data") or []
        if not data:
            return None
        return get_field(get_field(data[0], "metadata"), "bookingId")
