import base64
import json
import os
import time

# Configure the app for tests before anything under `app` is imported
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"test-webhook-signing-key-0123456789").decode()
JWT_SECRET = "test-supabase-jwt-secret-for-hs256-signing"

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ["DODO_PAYMENTS_API_KEY"] = ""
os.environ["DODO_API_KEY"] = ""
os.environ["DODO_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ["SUPABASE_JWT_SECRET"] = JWT_SECRET
os.environ["SUPABASE_JWT_AUDIENCE"] = ""
os.environ["FRONTEND_URL"] = "http://localhost:3000"

import jwt
import pytest
from faker import Faker
from fastapi.testclient import TestClient

from app.core.errors import ProviderError
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.dependencies.dodo import get_dodo_client
from app.main import create_app
from app.models import Purchase, User
from app.services.webhook_verifier import compute_signature

fake = Faker()

PRO_PRODUCT = "pdt_YQiSHzKDpVGlDUuYaSCR2"
BASIC_PRODUCT = "pdt_aCU0mubTSuDWGXLcIE9fw"
MAX_PRODUCT = "pdt_NKyYYMcKtZ8Hpdfmt4fB4"


def pytest_configure(config):
    config.addinivalue_line("markers", "payment: mark test as payment-related")
    config.addinivalue_line("markers", "auth: mark test as authentication-related")


class FakeDodoClient:
    """Stands in for DodoClient; records calls and returns canned provider objects."""

    def __init__(self):
        self.calls = []
        self.fail_with = None
        self.checkout_response = {"session_id": "cks_test_123", "checkout_url": "https://test.checkout.dodopayments.com/cks_test_123"}
        self.subscriptions = {}

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def create_checkout_session(self, product_id, return_url, quantity=1):
        self.calls.append(("create_checkout_session", product_id, return_url))
        self._maybe_fail()
        return self.checkout_response

    async def update_subscription(self, subscription_id, changes):
        self.calls.append(("update_subscription", subscription_id, changes))
        self._maybe_fail()
        current = self.subscriptions.setdefault(
            subscription_id, {"subscription_id": subscription_id, "status": "active"}
        )
        current.update(changes)
        return current

    async def retrieve_subscription(self, subscription_id):
        self.calls.append(("retrieve_subscription", subscription_id))
        self._maybe_fail()
        return dict(self.subscriptions.get(subscription_id, {"subscription_id": subscription_id}))


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def dodo():
    return FakeDodoClient()


@pytest.fixture()
def app(dodo):
    application = create_app()
    application.dependency_overrides[get_dodo_client] = lambda: dodo
    return application


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def unconfigured_client():
    """App with no Dodo credentials and no override."""
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db):
    def _make_user(email=None, user_id=None, name=None):
        user = User(
            id=user_id or fake.uuid4(),
            email=(email or fake.unique.email()).lower(),
            name=name or fake.name(),
            avatar_url=fake.image_url(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture()
def make_purchase(db):
    def _make_purchase(user, dodo_session_id=None, status="active", plan_type="subscription", **extra):
        purchase = Purchase(
            user_id=user.id,
            dodo_session_id=dodo_session_id or f"sub_{fake.uuid4()[:12]}",
            product_id=extra.pop("product_id", PRO_PRODUCT),
            amount=extra.pop("amount", 1999),
            currency=extra.pop("currency", "usd"),
            status=status,
            plan_type=plan_type,
            payment_data=extra.pop("payment_data", {"status": status}),
        )
        db.add(purchase)
        db.commit()
        db.refresh(purchase)
        return purchase
    return _make_purchase


def make_token(sub, email=None, secret=JWT_SECRET, expires_in=3600):
    claims = {"sub": sub, "role": "authenticated", "exp": int(time.time()) + expires_in}
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_or_sub, email=None):
    if isinstance(user_or_sub, User):
        return {"Authorization": f"Bearer {make_token(user_or_sub.id, user_or_sub.email)}"}
    return {"Authorization": f"Bearer {make_token(user_or_sub, email)}"}


def signed_webhook(event, secret=WEBHOOK_SECRET, webhook_id=None, timestamp=None, prefix="webhook"):
    """Serialize an event and build Standard Webhooks headers for it."""
    body = json.dumps(event).encode()
    webhook_id = webhook_id or f"msg_{fake.uuid4()[:16]}"
    timestamp = str(int(time.time()) if timestamp is None else timestamp)
    signature = compute_signature(secret, webhook_id, timestamp, body)
    headers = {
        f"{prefix}-id": webhook_id,
        f"{prefix}-timestamp": timestamp,
        f"{prefix}-signature": f"v1,{signature}",
        "content-type": "application/json",
    }
    return body, headers


def checkout_event(email, session_id=None, product_id=PRO_PRODUCT, amount=4900):
    return {
        "type": "checkout.session.completed",
        "data": {
            "id": session_id or f"cks_{fake.uuid4()[:12]}",
            "customer": {"email": email, "name": fake.name()},
            "amount_total": amount,
            "currency": "usd",
            "product_cart": [{"product_id": product_id, "quantity": 1}],
        },
    }


def subscription_event(event_type, email, subscription_id, **data):
    payload = {
        "subscription_id": subscription_id,
        "customer": {"email": email, "customer_id": "cus_test_1"},
        "product_id": PRO_PRODUCT,
        "recurring_pre_tax_amount": 1999,
        "currency": "USD",
        "status": event_type.split(".", 1)[1],
        "next_billing_date": "2026-11-19T00:00:00Z",
    }
    payload.update(data)
    return {"type": event_type, "data": payload}


@pytest.fixture()
def provider_error():
    return ProviderError("Dodo API error: 500")
