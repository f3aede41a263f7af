import copy
import hashlib
import hmac
import json
import re
import time

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from config import set_config_for_test

WEBHOOK_SECRET = "whsec_test_secret"
TOKEN_SECRET = "test-token-secret"


# ----------------------------
# In-memory stand-in for the pymongo Database used by the routes
# ----------------------------
def _matches_value(actual, expected):
    if isinstance(expected, dict) and any(k.startswith("$") for k in expected):
        for op, arg in expected.items():
            if op == "$in":
                values = actual if isinstance(actual, list) else [actual]
                if not any(v in arg for v in values):
                    return False
            elif op == "$ne":
                if actual == arg:
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in expected.get("$options", "") else 0
                if not isinstance(actual, str) or not re.search(arg, actual, flags):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def _matches(doc, filt):
    for key, expected in filt.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
        elif not _matches_value(doc.get(key), expected):
            return False
    return True


class FakeResult:
    def __init__(self, inserted_id=None, matched_count=0, modified_count=0):
        self.inserted_id = inserted_id
        self.matched_count = matched_count
        self.modified_count = modified_count


class FakeCursor(list):
    def limit(self, n):
        return FakeCursor(self[:n])


class FakeCollection:
    def __init__(self):
        self.docs = []

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return FakeResult(inserted_id=doc["_id"])

    def find(self, filt=None):
        return FakeCursor(copy.deepcopy(d) for d in self.docs if _matches(d, filt or {}))

    def find_one(self, filt=None):
        found = self.find(filt)
        return found[0] if found else None

    def update_one(self, filt, update):
        for doc in self.docs:
            if _matches(doc, filt):
                for key, value in update.get("$set", {}).items():
                    doc[key] = value
                for key, value in update.get("$push", {}).items():
                    doc.setdefault(key, []).append(value)
                return FakeResult(matched_count=1, modified_count=1)
        return FakeResult()


class FakeDatabase(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]

    def list_collection_names(self):
        return list(self.keys())


# ----------------------------
# Fixtures
# ----------------------------
@pytest.fixture(autouse=True)
def test_config():
    set_config_for_test(
        database_url=None,
        database_name=None,
        stripe_secret_key="sk_test_dummy",
        webhook_endpoint_secret=WEBHOOK_SECRET,
        secret_key=TOKEN_SECRET,
        frontend_url="http://frontend.test",
        log_level="DEBUG",
    )
    yield


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def gateway():
    from payments import CheckoutSession, StripeGateway

    class FakeGateway(StripeGateway):
        """Records session requests instead of calling Stripe. Signature checks stay real."""

        def __init__(self):
            super().__init__("sk_test_dummy", WEBHOOK_SECRET)
            self.calls = []
            self.url = "https://checkout.stripe.com/c/pay/cs_test_123"

        def create_checkout_session(self, **kwargs):
            self.calls.append(kwargs)
            return CheckoutSession(id="cs_test_123", url=self.url)

    return FakeGateway()


@pytest.fixture
def client(db, gateway):
    from database import get_db
    from main import app
    from payments import get_gateway

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_id(db):
    result = db["user"].insert_one({
        "fullname": "Asha Rao",
        "email": "asha@example.com",
        "password": "hashed",
    })
    return str(result.inserted_id)


@pytest.fixture
def auth_headers(user_id):
    from auth import create_access_token
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def restaurant(db, user_id):
    """Restaurant owned by ``user_id`` with two menu items."""
    pizza = db["menuitem"].insert_one({"name": "Pizza", "price": 500, "image": "i.png"}).inserted_id
    biryani = db["menuitem"].insert_one({"name": "Biryani", "price": 250.5, "image": "b.png"}).inserted_id
    result = db["restaurant"].insert_one({
        "user": user_id,
        "restaurantName": "Spice Route",
        "city": "Pune",
        "country": "India",
        "deliveryTime": 30,
        "cuisines": ["Indian", "Italian"],
        "menus": [str(pizza), str(biryani)],
    })
    return {"id": str(result.inserted_id), "pizza": str(pizza), "biryani": str(biryani)}


def sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type, order_id=None, amount_total=None, event_id="evt_test_1"):
    session = {"id": "cs_test_123", "object": "checkout.session", "metadata": {}}
    if order_id is not None:
        session["metadata"]["orderId"] = order_id
    if amount_total is not None:
        session["amount_total"] = amount_total
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": session}})
