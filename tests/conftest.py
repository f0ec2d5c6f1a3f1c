import os

# Settings are read at import time; configure before any app import.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["SITE_BASE_URL"] = "https://site.test"
os.environ["FINANCE_EMAIL"] = "finance@moorings.test"
os.environ["SMTP_HOST"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["TIMEZONE"] = "Europe/Lisbon"

import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token, hash_password
from app.db.session import Base, get_db
from app.main import app
from app.models.audit_log import AuditLog  # noqa: F401
from app.models.booking import Booking
from app.models.email_log import EmailLog  # noqa: F401
from app.models.extra import Extra
from app.models.houseboat import Boat, HouseboatModel
from app.models.payment import PaymentTransaction  # noqa: F401
from app.models.payment_event import PaymentEvent  # noqa: F401
from app.models.payment_token import PaymentToken  # noqa: F401
from app.models.tariff import ModelPrice, Tariff
from app.models.user import User

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def staff_user(db):
    u = User(
        id=str(uuid.uuid4()),
        email="desk@moorings.test",
        full_name="Front Desk",
        role="staff",
        password_hash=hash_password("desk-password"),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def staff_headers(staff_user):
    return {"Authorization": f"Bearer {create_access_token(staff_user.id)}"}


@pytest.fixture
def catalog(db):
    """One model with two boats, an all-year tariff at 100/150 and three extras."""
    model = HouseboatModel(id="model-s", name="Nomad S", slug="nomad-s", optimal_capacity=2, maximum_capacity=4)
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    boats = [
        Boat(id="boat-1", name="Nomad S #1", model_id=model.id, created_at=t0),
        Boat(id="boat-2", name="Nomad S #2", model_id=model.id, created_at=t0 + timedelta(minutes=1)),
    ]
    tariff = Tariff(id="tariff-all", name="All year", periods=[{"start": "01-01", "end": "12-31"}])
    price = ModelPrice(id="price-1", model_id=model.id, tariff_id=tariff.id, weekday_price=Decimal("100"), weekend_price=Decimal("150"))
    extras = [
        Extra(id="sup", name="Stand-up paddle", price=Decimal("20"), price_type="per_day", active=True),
        Extra(id="late", name="Late check-out", price=Decimal("35"), price_type="per_stay", active=True),
        Extra(id="breakfast", name="Breakfast basket", price=Decimal("12"), price_type="per_person", active=True),
    ]
    db.add_all([model, *boats, tariff, price, *extras])
    db.commit()
    return {"model": model, "boats": boats, "tariff": tariff}


@pytest.fixture
def make_booking(db):
    def _make(total="1000", paid="0", status="Confirmed", houseboat_id=None,
              start=datetime(2030, 6, 3, 14, tzinfo=timezone.utc), nights=3, **kw):
        b = Booking(
            id=str(uuid.uuid4()),
            houseboat_id=houseboat_id,
            client_name=kw.pop("client_name", "Ana Costa"),
            client_email=kw.pop("client_email", "ana@example.com"),
            client_phone="",
            start_time=start,
            end_time=start + timedelta(days=nights),
            number_of_guests=2,
            total_price=Decimal(total),
            amount_paid=Decimal(paid),
            status=status,
            payment_status="unpaid",
            source="manual",
            notes="",
            selected_extras=[],
            **kw,
        )
        db.add(b)
        db.commit()
        return b
    return _make


@pytest.fixture
def checkout_event():
    """Build a checkout.session.completed event the way Stripe delivers it."""
    def _build(metadata: dict, amount_cents: int, session_id: str | None = None, event_id: str | None = None,
               event_type: str = "checkout.session.completed", payment_status: str = "paid") -> dict:
        session_id = session_id or f"cs_test_{uuid.uuid4().hex[:12]}"
        return {
            "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "amount_total": amount_cents,
                    "currency": "eur",
                    "payment_status": payment_status,
                    "status": "complete",
                    "payment_intent": f"pi_{session_id[-8:]}",
                    "metadata": metadata,
                }
            },
        }
    return _build


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    signed = f"{ts}.".encode() + payload
    sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


@pytest.fixture
def post_webhook(client):
    def _post(event: dict, secret: str = WEBHOOK_SECRET, path: str = "/api/v1/webhooks/payment-provider"):
        payload = json.dumps(event).encode()
        return client.post(
            path,
            content=payload,
            headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
        )
    return _post


@pytest.fixture
def fake_stripe(monkeypatch):
    """Stand in for the Stripe API calls that leave the process; records what was sent."""
    import stripe

    calls = {"create": [], "sessions": {}}

    def _create(**kwargs):
        sid = f"cs_test_{len(calls['create']) + 1}"
        calls["create"].append(kwargs)
        session = {
            "id": sid,
            "url": f"https://checkout.stripe.test/{sid}",
            "payment_status": "unpaid",
            "status": "open",
            "amount_total": kwargs["line_items"][0]["price_data"]["unit_amount"],
            "metadata": kwargs.get("metadata", {}),
        }
        calls["sessions"][sid] = session
        return session

    def _retrieve(session_id, **kwargs):
        if session_id not in calls["sessions"]:
            raise stripe.InvalidRequestError(f"No such checkout.session: {session_id}", "id")
        return dict(calls["sessions"][session_id])

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", _retrieve)
    return calls
