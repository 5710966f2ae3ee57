# tests/conftest.py
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from camera_auction import models  # noqa: F401
from camera_auction.config import env
from camera_auction.config.time_policy import set_now_utc_for_testing
from camera_auction.database import Base, get_db
from camera_auction.logic import notifications as N
from camera_auction.pg.client import PaymentService, get_payment_service
from camera_auction.pg.types import ChargeResult
from camera_auction.policy.loader import reset_fee_policy_cache
from camera_auction.security import create_access_token
from camera_auction.store import SqlDocumentStore, get_store

UTC = timezone.utc

ADMIN = "admin@example.com"
CRON_SECRET = "cron-test-secret"
WEBHOOK_SECRET = "whsec_test"


def utc(y, m, d, hh=0, mm=0):
    return datetime(y, m, d, hh, mm, tzinfo=UTC)


# -------------------------------------------------------
# 테스트 더블
# -------------------------------------------------------
class FakePayments(PaymentService):
    """같은 idempotency key 면 같은 결과 (PG 멱등키 흉내)."""

    def __init__(self):
        self.requests = []
        self.next_status = "succeeded"
        self._by_key = {}
        self._by_id = {}

    def create_and_confirm_charge(self, req):
        self.requests.append(req)
        if req.idempotency_key in self._by_key:
            return self._by_key[req.idempotency_key]
        result = ChargeResult(
            status=self.next_status,
            charge_id=f"pi_test_{len(self._by_key) + 1}",
            amount_minor=req.amount_minor,
            metadata=dict(req.metadata),
            error_message=None if self.next_status == "succeeded" else "Your card was declined.",
        )
        self._by_key[req.idempotency_key] = result
        self._by_id[result.charge_id] = result
        return result

    def retrieve_charge(self, charge_id):
        return self._by_id.get(charge_id) or ChargeResult(status="failed", charge_id=charge_id)

    def add_intent(self, charge_id, amount_minor, metadata, status="succeeded"):
        self._by_id[charge_id] = ChargeResult(
            status=status, charge_id=charge_id, amount_minor=amount_minor, metadata=dict(metadata)
        )


class RecordingNotifier(N.Notifier):
    def __init__(self):
        self.sent = []

    def send(self, to, subject, text):
        self.sent.append((to, subject, text))

    def to(self, email):
        return [s for s in self.sent if s[0] == email]


# -------------------------------------------------------
# fixtures
# -------------------------------------------------------
@pytest.fixture(autouse=True)
def _isolate_globals(monkeypatch):
    monkeypatch.setattr(env, "ADMIN_EMAIL", ADMIN)
    monkeypatch.setattr(env, "CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(env, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(env, "FEE_POLICY_YAML_PATH", "")
    reset_fee_policy_cache()
    yield
    set_now_utc_for_testing(None)
    reset_fee_policy_cache()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db_session):
    return SqlDocumentStore(db_session)


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_user(store):
    def _make(email, *, with_payment=True):
        fields = {"email": email, "hashed_password": "not-a-real-hash"}
        if with_payment:
            fields.update(stripe_customer_id=f"cus_{email.split('@')[0]}", default_payment_method_id="pm_card_visa")
        return store.create_document("users", fields)
    return _make


@pytest.fixture
def make_listing(store):
    def _make(**overrides):
        fields = {
            "seller_email": "seller@example.com",
            "title": "Leica M6 0.72 black",
            "brand": "Leica",
            "model": "M6",
            "starting_price": 100,
            "reserve_price": 250,
            "status": "pending_approval",
            "bid_count": 0,
            "created_at": utc(2024, 1, 2, 9),
        }
        fields.update(overrides)
        return store.create_document("listings", fields)
    return _make


@pytest.fixture
def client(db_session, store, payments, notifier):
    from camera_auction.main import app
    from camera_auction.routers import contact

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_payment_service] = lambda: payments
    app.dependency_overrides[N.get_notifier] = lambda: notifier
    contact.limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        contact.limiter.reset()


def auth(email, user_id="u-test"):
    token = create_access_token(user_id=user_id, email=email)
    return {"Authorization": f"Bearer {token}"}


CRON = {"X-Cron-Secret": CRON_SECRET}
