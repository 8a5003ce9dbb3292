import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="sohub-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENABLE_CHANGE_FEED"] = "false"
os.environ["ENABLE_EMAIL"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from sohub.auth.security import create_access_token, get_password_hash
from sohub.config import settings
from sohub.db import Base, SessionLocal, engine
from sohub.models.models import User
from sohub.schemas.orders import OrderCreate
from sohub.services.counter import ensure_counter
from sohub.services.lifecycle import OrderEffects
from sohub.services.time_utils import utcnow

PASSWORD = "Passw0rd!"


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event, payload, user_id=None):
        self.events.append((event, payload, user_id))

    def names(self):
        return [e[0] for e in self.events]


class RecordingDefer:
    def __init__(self):
        self.calls = []

    def __call__(self, fn, *args, **kwargs):
        self.calls.append((fn, args, kwargs))


def order_payload(**overrides):
    data = {
        "customer_name": "Acme School",
        "name": "Ravi Kumar",
        "contact_no": "9876543210",
        "customer_email": "ravi@example.com",
        "city": "Patna",
        "state": "Bihar",
        "pin_code": "800001",
        "shipping_address": "1 Main Road",
        "billing_address": "1 Main Road",
        "payment_terms": "100% Advance",
        "dispatch_from": "Patna",
        "products": [
            {"product_type": "IFPD", "qty": 2, "unit_price": 100, "gst": "18", "warranty": "1 Year", "brand": "Promark"},
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    ensure_counter(session, settings.order_counter_name)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db):
    def _make(role="Sales", email=None, username=None, password=PASSWORD):
        n = db.query(User).count() + 1
        user = User(
            username=username or f"user{n}",
            email=email or f"user{n}@example.com",
            password_hash=get_password_hash(password),
            role=role,
            created_at=utcnow(),
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def effects(publisher):
    return OrderEffects(publisher=publisher, defer=RecordingDefer())


@pytest.fixture()
def new_order(db, make_user, effects):
    from sohub.services.lifecycle import create_order

    def _create(actor=None, **overrides):
        actor = actor or make_user()
        return create_order(db, OrderCreate(**order_payload(**overrides)), actor, effects)

    return _create


@pytest.fixture()
def client(db):
    from sohub.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers
