import os
import time

# Settings are read at import time, so they must be in place before zapshift loads.
os.environ["DATABASE_URL"] = "sqlite:///./test_zapshift.db"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from zapshift.main import app as fastapi_app
from zapshift.database import Base, get_db
from zapshift.errors import NotFound
from zapshift.models import Parcel
from zapshift.schemas import CheckoutSession, SessionMetadata
from zapshift.stores import ParcelStore

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


def override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_parcel(db):
    def _make(**fields):
        data = {"name": "Documents", "sender_email": "sender@example.com", "cost": 50}
        data.update(fields)
        parcel_id = ParcelStore(db).insert(Parcel(**data))
        db.commit()
        return parcel_id
    return _make


@pytest.fixture
def auth_headers():
    def _headers(email, secret="test-jwt-secret", expires_in=3600):
        token = jwt.encode(
            {"email": email, "exp": int(time.time()) + expires_in},
            secret,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def stripe_session():
    """Raw checkout session payload as Stripe returns it."""
    def _session(session_id="cs_test_1", parcel_id="P1", payment_status="paid",
                 amount_total=5000, payment_intent="pi_abc", parcel_name="Documents", **extra):
        data = {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": payment_status,
            "amount_total": amount_total,
            "currency": "usd",
            "customer_email": "sender@example.com",
            "metadata": {"parcelId": parcel_id, "parcelName": parcel_name} if parcel_id else {},
            "payment_intent": payment_intent,
            "url": f"https://checkout.stripe.com/c/pay/{session_id}",
        }
        data.update(extra)
        return data
    return _session


class FakeGateway:
    """In-memory stand-in for StripeGateway used by the reconciler tests."""

    def __init__(self):
        self.sessions = {}
        self.retrieved = []

    def add(self, session_id="cs_test_1", parcel_id="P1", payment_status="paid",
            amount_total=5000, payment_intent="pi_abc", currency="usd",
            customer_email="sender@example.com", parcel_name="Documents"):
        metadata = SessionMetadata(parcel_id=parcel_id, parcel_name=parcel_name) if parcel_id else None
        self.sessions[session_id] = CheckoutSession(
            session_id=session_id,
            payment_status=payment_status,
            amount_total=amount_total,
            currency=currency,
            customer_email=customer_email,
            metadata=metadata,
            payment_intent=payment_intent,
        )
        return self.sessions[session_id]

    def retrieve_session(self, reference):
        self.retrieved.append(reference)
        if reference not in self.sessions:
            raise NotFound(f"Checkout session {reference} not found")
        return self.sessions[reference]


@pytest.fixture
def gateway():
    return FakeGateway()
