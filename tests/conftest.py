import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_JWT_SECRET = "test-secret-key-for-testing-only"
TEST_IPN_SECRET = "test-ipn-secret"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["NOWPAYMENTS_API_KEY"] = "np_test_key"
os.environ["NOWPAYMENTS_IPN_SECRET"] = TEST_IPN_SECRET
os.environ["BASE_URL"] = "https://api.shop.example.com"
os.environ["FRONTEND_URL"] = "https://shop.example.com"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.dependencies import get_activation_hook, get_invoice_provider
from storefront.main import app
from storefront.models.database import Base, get_db, get_service_db
from storefront.models.order import Order
from storefront.services.nowpayments_service import Invoice, NowPaymentsError
from storefront.services.signatures import sign_payload

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

USER_ID = "0b5d7c8e-3f4a-4e61-9c2d-5a6b7c8d9e0f"
OTHER_USER_ID = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"


class FakeInvoiceProvider:
    """Records invoice requests and answers with a fixed invoice."""

    def __init__(self, invoice_id: str = "4522625843"):
        self.invoice_id = invoice_id
        self.calls: list[dict] = []
        self.error: NowPaymentsError | None = None

    def create_invoice(self, **kwargs) -> Invoice:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return Invoice(
            id=self.invoice_id,
            invoice_url=f"https://nowpayments.io/payment/?iid={self.invoice_id}",
        )


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def invoice_provider() -> FakeInvoiceProvider:
    return FakeInvoiceProvider()


@pytest.fixture
def settled_payments() -> list[str]:
    return []


@pytest.fixture(scope="function")
def client(
    db: Session,
    invoice_provider: FakeInvoiceProvider,
    settled_payments: list[str],
) -> Generator[TestClient, None, None]:
    """Create a test client with database, provider and activation overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_db] = override_get_db
    app.dependency_overrides[get_invoice_provider] = lambda: invoice_provider
    app.dependency_overrides[get_activation_hook] = lambda: settled_payments.append
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_access_token(user_id: str = USER_ID, **claims) -> str:
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    payload.update(claims)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token()}"}


def signed_ipn(payload: dict, secret: str = TEST_IPN_SECRET) -> tuple[bytes, dict[str, str]]:
    raw_body = json.dumps(payload).encode()
    headers = {
        "Content-Type": "application/json",
        "x-nowpayments-sig": sign_payload(payload, secret),
    }
    return raw_body, headers


@pytest.fixture
def make_orders(db: Session):
    """Insert orders sharing one payment_id, like a single checkout would."""

    def _make(
        payment_id: str = "42",
        count: int = 2,
        payment_status: str = "pending",
        user_id: str = USER_ID,
    ) -> list[Order]:
        orders = [
            Order(
                user_id=user_id,
                service_id=f"service-{index}",
                btc_amount=Decimal("0.0001") * (index + 1),
                btc_address="bc1qexampleaddress",
                status=payment_status,
                payment_status=payment_status,
                payment_id=payment_id,
                customer_email="buyer@x.com",
            )
            for index in range(count)
        ]
        db.add_all(orders)
        db.commit()
        for order in orders:
            db.refresh(order)
        return orders

    return _make


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def token_factory():
    return make_access_token


@pytest.fixture
def sign_ipn():
    return signed_ipn
