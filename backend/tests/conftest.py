# tests/conftest.py
import base64
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from svix.webhooks import Webhook

from memberhub.core.config import Settings
from memberhub.core.container import AppServices
from memberhub.db.base import Base
from memberhub.db.models.community import Community
from memberhub.db.session import create_db_engine, create_session_factory
from memberhub.main import create_app
from memberhub.services.circle import CircleAdminClient, CircleHeadlessAuthClient, CircleMemberClient
from memberhub.services.identity import ClerkIdentityProvider, UserProfile
from memberhub.services.payments import (
    CheckoutSessionInfo,
    PaymentGatewayError,
    PriceInfo,
    StripeGateway,
)

API_TOKEN = "test-internal-token"
STRIPE_WEBHOOK_SECRET = "whsec_stripe_test_secret"
CLERK_WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"clerk-test-signing-secret-0123").decode()
CIRCLE_BASE_URL = "https://circle.test"

SOLAS_SPACE_ID = 2222222
SOLAS_MONTHLY = "price_solas_monthly"
SOLAS_ANNUAL = "price_solas_annual"


class FakeCircle:
    """In-memory Circle API served through httpx.MockTransport."""

    def __init__(self):
        self.members: dict[str, int] = {}
        self.space_members: set[tuple[int, int]] = set()
        self.calls: list[tuple[str, str, dict, object]] = []
        self.failures: dict[tuple[str, str], tuple[int, object]] = {}
        self.next_id = 1000

    def fail(self, method: str, path: str, status: int, payload: object) -> None:
        self.failures[(method, path)] = (status, payload)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _, _ in self.calls if m == method and p == path)

    def add_member(self, email: str) -> int:
        self.next_id += 1
        self.members[email] = self.next_id
        return self.next_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = dict(request.url.params)
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, params, body))

        if (request.method, path) in self.failures:
            status, payload = self.failures[(request.method, path)]
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)

        if path == "/api/admin/v2/community_members/search":
            member_id = self.members.get(params["email"])
            if member_id is None:
                return httpx.Response(404, json={"message": "Community member not found"})
            return httpx.Response(200, json={"id": member_id, "email": params["email"]})

        if path == "/api/admin/v2/community_members" and request.method == "POST":
            member_id = self.add_member(body["email"])
            return httpx.Response(
                200,
                json={"message": "Member created", "community_member": {"id": member_id}},
            )

        if path == "/api/admin/v2/space_members" and request.method == "POST":
            key = (body["community_member_id"], body["space_id"])
            if key in self.space_members:
                return httpx.Response(422, json={"message": "This user is already a member of this space"})
            self.space_members.add(key)
            return httpx.Response(200, json={"message": "Member added to space"})

        if path == "/api/admin/v2/space_members" and request.method == "DELETE":
            member_id = self.members.get(params["email"])
            key = (member_id, int(params["space_id"]))
            if key not in self.space_members:
                return httpx.Response(404, json={"message": "Space member not found"})
            self.space_members.discard(key)
            return httpx.Response(200, json={"message": "Member removed from space"})

        if path == "/api/headless/v1/auth_token":
            return httpx.Response(200, json={"access_token": f"member-token-{body['email']}"})

        if path.startswith("/api/v1/spaces/") and path.endswith("/posts"):
            space_id = int(path.split("/")[4])
            return httpx.Response(
                200,
                json={"records": [{"id": 1, "name": "Welcome", "space_id": space_id}]},
            )

        if path.startswith("/api/v1/spaces/"):
            space_id = int(path.split("/")[4])
            return httpx.Response(200, json={"id": space_id, "name": "Solas Nua", "slug": "solas-nua"})

        return httpx.Response(404, json={"message": "Route not found"})


class FakeStripeGateway(StripeGateway):
    """Stripe API calls served from memory; webhook verification stays real."""

    def __init__(self):
        super().__init__("sk_test_fake", STRIPE_WEBHOOK_SECRET)
        self.sessions: dict[str, CheckoutSessionInfo] = {}
        self.prices: dict[str, PriceInfo] = {}
        self.checkouts: list[dict] = []
        self.portals: list[tuple[str, str]] = []

    def add_session(self, session_id="cs_test_1", user_id="user_1", payment_status="paid",
                    customer_id="cus_1", subscription_id="sub_1", price_id=SOLAS_MONTHLY):
        self.sessions[session_id] = CheckoutSessionInfo(
            id=session_id,
            client_reference_id=user_id,
            payment_status=payment_status,
            customer_id=customer_id,
            subscription_id=subscription_id,
            price_id=price_id,
        )

    def retrieve_checkout_session(self, session_id):
        if session_id not in self.sessions:
            raise PaymentGatewayError(f"Checkout session not found: {session_id}", not_found=True)
        return self.sessions[session_id]

    def create_checkout_session(self, **kwargs):
        self.checkouts.append(kwargs)
        return "cs_test_new", "https://checkout.stripe.test/cs_test_new"

    def create_billing_portal_session(self, customer_id, return_url):
        self.portals.append((customer_id, return_url))
        return "https://billing.stripe.test/portal"

    def retrieve_price(self, price_id):
        if price_id not in self.prices:
            raise PaymentGatewayError(f"No such price: '{price_id}'", not_found=True)
        return self.prices[price_id]


class FakeIdentityProvider(ClerkIdentityProvider):
    def __init__(self):
        super().__init__(None, CLERK_WEBHOOK_SECRET)
        self.profiles: dict[str, UserProfile] = {}

    def add(self, user_id: str, email: str | None, name: str | None = None) -> None:
        self.profiles[user_id] = UserProfile(id=user_id, email=email, name=name)

    def get_user_profile(self, user_id):
        return self.profiles.get(user_id)


def stripe_signature(payload: str, secret: str = STRIPE_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def svix_headers(payload: str, msg_id: str = "msg_test_1") -> dict:
    now = datetime.now(timezone.utc)
    signature = Webhook(CLERK_WEBHOOK_SECRET).sign(msg_id, now, payload)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": signature,
    }


@pytest.fixture()
def engine(tmp_path):
    """A throwaway SQLite database per test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def fake_circle():
    return FakeCircle()


@pytest.fixture()
def circle_admin(fake_circle):
    client = CircleAdminClient(
        CIRCLE_BASE_URL, "admin-key", transport=httpx.MockTransport(fake_circle.handler)
    )
    yield client
    client.close()


@pytest.fixture()
def payments():
    return FakeStripeGateway()


@pytest.fixture()
def identity():
    provider = FakeIdentityProvider()
    provider.add("user_1", "aoife@example.com", "Aoife")
    provider.add("admin_1", "admin@example.com", "Admin")
    return provider


@pytest.fixture()
def solas(db):
    community = Community(
        name="Solas Nua",
        slug="solas-nua",
        description="Contemporary Irish arts and culture.",
        circle_space_id=SOLAS_SPACE_ID,
        stripe_price_id_monthly=SOLAS_MONTHLY,
        stripe_price_id_annual=SOLAS_ANNUAL,
    )
    db.add(community)
    db.commit()
    return community


@pytest.fixture()
def test_settings():
    return Settings(
        INTERNAL_API_TOKEN=API_TOKEN,
        ADMIN_EMAILS="admin@example.com",
        APP_URL="https://members.test",
        STRIPE_SECRET_KEY="sk_test_fake",
        STRIPE_WEBHOOK_SECRET=STRIPE_WEBHOOK_SECRET,
        CLERK_WEBHOOK_SECRET=CLERK_WEBHOOK_SECRET,
        CIRCLE_BASE_URL=CIRCLE_BASE_URL,
    )


@pytest.fixture()
def client(engine, session_factory, fake_circle, circle_admin, payments, identity, test_settings):
    transport = httpx.MockTransport(fake_circle.handler)
    services = AppServices(
        engine=engine,
        session_factory=session_factory,
        payments=payments,
        identity=identity,
        circle_admin=circle_admin,
        circle_auth=CircleHeadlessAuthClient(CIRCLE_BASE_URL, "headless-key", transport=transport),
        circle_member=CircleMemberClient(CIRCLE_BASE_URL, transport=transport),
    )
    app = create_app(app_settings=test_settings, services_factory=lambda _settings: services)
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user_id: str = "user_1") -> dict:
    return {"Authorization": f"Bearer {API_TOKEN}", "X-User-Id": user_id}


@pytest.fixture()
def headers():
    return auth_headers


@pytest.fixture()
def sign_stripe():
    return stripe_signature


@pytest.fixture()
def sign_svix():
    return svix_headers
