import dataclasses
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from faker import Faker
from flask_jwt_extended import create_access_token

from transformo import create_app
from transformo.billing.records import SubscriptionRecord
from transformo.billing.stores import SqlSubscriptionStore
from transformo.errors import AuthenticationError, DuplicateSubscriptionError, TransientError
from transformo.extensions import db
from transformo.models import Business

# Initialize Faker for generating test data
fake = Faker()

WEBHOOK_SECRET = "whsec_test_secret"


def pytest_configure(config):
    config.addinivalue_line("markers", "db: mark test as database-backed")
    config.addinivalue_line("markers", "payment: mark test as payment-related")


# ==================== APPLICATION ====================

@pytest.fixture()
def app():
    """Fresh application and in-memory database per test"""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def business(app):
    business = Business(business_name=fake.company())
    db.session.add(business)
    db.session.commit()
    return business


@pytest.fixture()
def auth_headers(app):
    """Bearer headers for a user acting on behalf of `business_id`"""
    def _headers(business_id=None, **claims):
        if business_id is not None:
            claims["business_id"] = business_id
        claims.setdefault("email", fake.email())
        token = create_access_token(identity=fake.uuid4(), additional_claims=claims)
        return {
            "Authorization": f"Bearer {token}",
            "X-Request-ID": fake.uuid4(),
        }

    return _headers


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does"""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture()
def post_webhook(client):
    """POST a signed event to the webhook endpoint"""
    def _post(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event)
        headers = {"Stripe-Signature": signature or sign_payload(payload, secret)}
        return client.post(
            "/api/stripe/webhooks",
            data=payload,
            headers=headers,
            content_type="application/json",
        )

    return _post


# ==================== STRIPE OBJECTS ====================

def unix(value: datetime) -> int:
    return int(value.timestamp())


@pytest.fixture()
def stripe_subscription():
    """Factory for Stripe subscription objects as delivered by the API"""
    def _subscription(
        subscription_id=None,
        customer_id=None,
        status="trialing",
        price_id="price_monthly",
        period_start=None,
        period_end=None,
        trial_end=None,
        cancel_at_period_end=False,
        canceled_at=None,
    ):
        period_start = period_start or datetime.now(timezone.utc)
        period_end = period_end or period_start + timedelta(days=7)
        return {
            "id": subscription_id or f"sub_{fake.uuid4()[:14]}",
            "object": "subscription",
            "customer": customer_id or f"cus_{fake.uuid4()[:14]}",
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "canceled_at": unix(canceled_at) if canceled_at else None,
            "trial_end": unix(trial_end) if trial_end else None,
            "items": {
                "object": "list",
                "data": [
                    {
                        "id": f"si_{fake.uuid4()[:14]}",
                        "price": {"id": price_id, "object": "price"},
                        "current_period_start": unix(period_start),
                        "current_period_end": unix(period_end),
                    }
                ],
            },
            "metadata": {},
        }

    return _subscription


@pytest.fixture()
def stripe_event():
    """Factory for Stripe event envelopes"""
    def _event(event_type, data_object, event_id=None, created=None):
        return {
            "id": event_id or f"evt_{fake.uuid4()[:14]}",
            "object": "event",
            "type": event_type,
            "api_version": "2024-06-20",
            "created": created or int(time.time()),
            "livemode": False,
            "data": {"object": data_object},
        }

    return _event


@pytest.fixture()
def checkout_session():
    def _session(subscription_id, customer_id, business_id):
        return {
            "id": f"cs_test_{fake.uuid4()[:14]}",
            "object": "checkout.session",
            "mode": "subscription",
            "subscription": subscription_id,
            "customer": customer_id,
            "metadata": {"business_id": business_id} if business_id else {},
        }

    return _session


# ==================== IN-MEMORY PORTS ====================

class FakeProvider:
    """Accepts the signature "valid" and serves subscriptions from a dict"""

    def __init__(self):
        self.subscriptions = {}
        self.unavailable = False
        self.retrieve_calls = []

    def verify_event(self, payload, signature):
        if signature != "valid":
            raise AuthenticationError("Invalid signature")
        return json.loads(payload)

    def retrieve_subscription(self, subscription_id):
        self.retrieve_calls.append(subscription_id)
        if self.unavailable:
            raise TransientError("Stripe unavailable during subscription retrieval")
        return self.subscriptions[subscription_id]


class InMemorySubscriptionStore:
    def __init__(self):
        self.records = {}
        self.inserts = 0
        self.updates = 0

    def insert(self, record):
        taken = record.business_id in self.records or any(
            existing.provider_subscription_id == record.provider_subscription_id
            for existing in self.records.values()
        )
        if taken:
            raise DuplicateSubscriptionError(f"Subscription row already exists for business {record.business_id}")
        self.records[record.business_id] = record
        self.inserts += 1

    def update_by_provider_subscription_id(self, subscription_id, fields):
        for business_id, record in self.records.items():
            if record.provider_subscription_id != subscription_id:
                continue
            new_end = fields.get("current_period_end")
            if new_end is not None and record.current_period_end > new_end:
                return 0
            self.records[business_id] = dataclasses.replace(record, **fields)
            self.updates += 1
            return 1
        return 0

    def get_by_business_id(self, business_id):
        return self.records.get(business_id)


class InMemoryLedger:
    def __init__(self):
        self.events = {}

    def exists(self, event_id):
        return event_id in self.events

    def append(self, event_id, event_type, payload, received_at):
        if event_id in self.events:
            return False
        self.events[event_id] = (event_type, payload, received_at)
        return True


class FakeTenants:
    def __init__(self, *business_ids):
        self.business_ids = set(business_ids)

    def exists(self, business_id):
        return business_id in self.business_ids


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def memory_store():
    return InMemorySubscriptionStore()


@pytest.fixture()
def memory_ledger():
    return InMemoryLedger()


@pytest.fixture()
def tenant_id():
    return fake.uuid4()


@pytest.fixture()
def fake_tenants(tenant_id):
    return FakeTenants(tenant_id)


@pytest.fixture()
def fresh_ports():
    """Build an independent (store, ledger) pair"""
    return lambda: (InMemorySubscriptionStore(), InMemoryLedger())


@pytest.fixture()
def sign():
    return sign_payload


@pytest.fixture()
def subscription_row(app):
    """Persist a subscription for a business straight through the store"""
    def _create(business, status="active", period_end=None, trial_end=None, price_id="price_monthly"):
        period_end = period_end or datetime.now(timezone.utc) + timedelta(days=20)
        record = SubscriptionRecord(
            business_id=business.id,
            provider_subscription_id=f"sub_{fake.uuid4()[:14]}",
            provider_customer_id=business.stripe_customer_id or f"cus_{fake.uuid4()[:14]}",
            status=status,
            price_id=price_id,
            current_period_start=period_end - timedelta(days=30),
            current_period_end=period_end,
            trial_end=trial_end,
        )
        SqlSubscriptionStore().insert(record)
        return record

    return _create
