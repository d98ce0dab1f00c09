import base64
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from showsphere.app import create_app
from showsphere.core.config import get_settings, settings
from showsphere.core.container import build_services
from showsphere.db.base import Base
from showsphere.models import Movie, Show, User
from showsphere.services.email import EmailService
from showsphere.services.payment import CheckoutSession, StripePaymentGateway

WEBHOOK_SECRET = "whsec_test_secret"
IDENTITY_WEBHOOK_SECRET = "whsec_aWRlbnRpdHktdGVzdC1zZWNyZXQ="


class FakePaymentGateway(StripePaymentGateway):
    """Real webhook verification, canned checkout sessions."""

    def __init__(self):
        super().__init__("sk_test_fake", WEBHOOK_SECRET)
        self.sessions: List[Dict] = []
        self.payment_intents: Dict[str, str] = {}
        self.fail_with: Optional[Exception] = None

    async def create_checkout_session(self, booking_id, amount, product_name, success_url, cancel_url, expires_at):
        self.validate_credentials()
        if self.fail_with is not None:
            raise self.fail_with
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({
            "id": session_id,
            "booking_id": booking_id,
            "amount": amount,
            "product_name": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "expires_at": expires_at,
        })
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/pay/{session_id}")

    async def find_booking_id_for_payment_intent(self, payment_intent_id):
        return self.payment_intents.get(payment_intent_id)


class RecordingEmailService(EmailService):
    def __init__(self, test_settings):
        super().__init__(test_settings)
        self.sent: List[Dict] = []
        self.fail = False

    async def send_email(self, to_email, subject, html_content):
        if self.fail:
            return False
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for payload, computed the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, obj: Dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })


@pytest.fixture
def test_settings():
    return settings.model_copy(update={
        "STRIPE_SECRET_KEY": None,
        "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "IDENTITY_WEBHOOK_SECRET": IDENTITY_WEBHOOK_SECRET,
        "PAYMENT_RECHECK_DELAY_SECONDS": 0,
        "NOTIFICATION_TIMEOUT_SECONDS": 2,
        "SMTP_HOST": None,
        "ADMIN_USER_IDS": ["admin_1"],
        "RUN_BACKGROUND_WORKERS": False,
        "FRONTEND_URL": "http://localhost:5173",
    })


@pytest.fixture
async def db_engine(tmp_path):
    """Create a database engine for the tests.

    A file database so concurrent sessions see each other's commits.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'showsphere_test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return async_sessionmaker(
        bind=db_engine,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


@pytest.fixture
async def redis_client():
    redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
async def seeded_test_data(db_session_factory):
    """One movie, one show tomorrow at 200.00 with every seat free, and three users."""
    async with db_session_factory() as session:
        session.add_all([
            User(id="user_1", name="Asha", email="asha@example.com"),
            User(id="user_2", name="Ravi", email="ravi@example.com"),
            User(id="admin_1", name="Admin", email="admin@example.com"),
        ])
        movie = Movie(id="27205", title="Inception", overview="A thief who steals corporate secrets", runtime=148)
        session.add(movie)
        await session.flush()

        show = Show(
            movie_id=movie.id,
            show_date_time=datetime.now(timezone.utc) + timedelta(days=1),
            show_price=Decimal("200.00"),
            occupied_seats={},
        )
        session.add(show)
        await session.commit()

        yield {
            "show_id": show.id,
            "movie_id": movie.id,
            "movie_title": movie.title,
            "user_ids": ["user_1", "user_2"],
        }


@pytest.fixture
def email_service(test_settings):
    return RecordingEmailService(test_settings)


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
async def services(test_settings, db_session_factory, redis_client, email_service):
    """Services without a payment provider: bookings are confirmed directly."""
    services = build_services(test_settings, db_session_factory, redis_client, email_service=email_service)
    yield services
    await services.dispatcher.drain()


@pytest.fixture
async def paid_services(test_settings, db_session_factory, redis_client, email_service, payment_gateway):
    """Services with a (fake) payment provider: bookings wait for checkout."""
    services = build_services(
        test_settings, db_session_factory, redis_client,
        payment_gateway=payment_gateway, email_service=email_service)
    yield services
    await services.dispatcher.drain()


def make_client_app(test_settings, services):
    app = create_app()
    app.state.services = services
    app.dependency_overrides[get_settings] = lambda: test_settings
    return app


@pytest.fixture
async def client(test_settings, services):
    app = make_client_app(test_settings, services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def paid_client(test_settings, paid_services):
    app = make_client_app(test_settings, paid_services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def signed_event():
    """Build (payload, headers) for a payment event, signed with the test webhook secret."""
    def build(event_type: str, obj: Dict, secret: str = WEBHOOK_SECRET):
        payload = make_event(event_type, obj)
        return payload, {"Stripe-Signature": sign_payload(payload, secret), "Content-Type": "application/json"}
    return build


def sign_identity_payload(payload: str, message_id: str, secret: str = IDENTITY_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> Dict[str, str]:
    """svix-* headers for an identity-provider event."""
    timestamp = str(timestamp or int(time.time()))
    key = base64.b64decode(secret.removeprefix("whsec_"))
    digest = hmac.new(key, f"{message_id}.{timestamp}.{payload}".encode(), hashlib.sha256).digest()
    return {
        "svix-id": message_id,
        "svix-timestamp": timestamp,
        "svix-signature": f"v1,{base64.b64encode(digest).decode()}",
        "Content-Type": "application/json",
    }


@pytest.fixture
def signed_user_event():
    """Build (payload, headers) for an identity-provider user event."""
    def build(event_type: str, data: Dict, message_id: str = "msg_test_1", **signing):
        payload = json.dumps({"type": event_type, "object": "event", "data": data})
        return payload, sign_identity_payload(payload, message_id, **signing)
    return build
