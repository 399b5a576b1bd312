"""
Shared fixtures. Required settings and a throwaway SQLite database are put
in the environment before the application package is imported.
"""
import os
import tempfile
from datetime import datetime

_TMP_DIR = tempfile.mkdtemp(prefix="payment-bridge-tests-")

os.environ.update({
    "MPESA_CONSUMER_KEY": "test-consumer-key",
    "MPESA_CONSUMER_SECRET": "test-consumer-secret",
    "MPESA_BUSINESS_SHORTCODE": "174379",
    "MPESA_PASSKEY": "test-passkey",
    "MPESA_CALLBACK_URL": "https://example.test/api/mpesa/callback",
    "DATABASE_URL": f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}",
    "LOG_DIR": os.path.join(_TMP_DIR, "logs"),
    "ENVIRONMENT": "development",
    "INITIATE_RATE_LIMIT": "1000",
})

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.dependencies import (  # noqa: E402
    get_callback_handler, get_entitlement_service, get_mpesa_client, get_store,
)
from app.errors import UpstreamAuthFailure  # noqa: E402
from app.main import app  # noqa: E402
from app.services.callback_handler import CallbackHandler  # noqa: E402
from app.services.entitlement_service import EntitlementService  # noqa: E402
from app.services.payment_store import PaymentStore  # noqa: E402
from app.routes.payment import initiation_limiter  # noqa: E402

MERCHANT_ID = "29115-34620561-1"
CHECKOUT_ID = "ws_CO_191220191020363925"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeMpesaClient:
    """Stands in for MpesaClient; records every STK push it receives."""

    def __init__(self):
        self.token_error = None
        self.response = accepted_response()
        self.pushes = []

    def get_access_token(self) -> str:
        if self.token_error:
            raise self.token_error
        return "fake-token"

    def stk_push(self, access_token, amount, phone, plan_description):
        self.pushes.append({
            "token": access_token, "amount": amount, "phone": phone, "plan": plan_description,
        })
        return dict(self.response)

    def reject_auth(self):
        self.token_error = UpstreamAuthFailure(
            "Failed to authenticate with M-Pesa. Please try again later."
        )

    def close(self):
        pass


def accepted_response(merchant_id=MERCHANT_ID, checkout_id=CHECKOUT_ID):
    return {
        "MerchantRequestID": merchant_id,
        "CheckoutRequestID": checkout_id,
        "ResponseCode": "0",
        "ResponseDescription": "Success. Request accepted for processing",
        "CustomerMessage": "Success. Request accepted for processing",
    }


def callback_payload(result_code=0, merchant_id=MERCHANT_ID, checkout_id=CHECKOUT_ID,
                     receipt="ABC123", amount=20, phone=254712345678,
                     transaction_date=20240101120000, result_desc=None):
    stk = {
        "MerchantRequestID": merchant_id,
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc or (
            "The service request is processed successfully." if result_code == 0
            else "Request cancelled by user"
        ),
    }
    if result_code == 0:
        items = [{"Name": "Amount", "Value": amount}]
        if receipt is not None:
            items.append({"Name": "MpesaReceiptNumber", "Value": receipt})
        items.append({"Name": "Balance"})
        items.append({"Name": "TransactionDate", "Value": transaction_date})
        items.append({"Name": "PhoneNumber", "Value": phone})
        stk["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": stk}}


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    initiation_limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return PaymentStore(db)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture
def handler(clock):
    return CallbackHandler(SessionLocal, clock=clock)


@pytest.fixture
def fake_mpesa():
    return FakeMpesaClient()


@pytest.fixture
def client(fake_mpesa, handler, clock):
    def entitlement_override(store: PaymentStore = Depends(get_store)):
        return EntitlementService(store, clock=clock)

    with TestClient(app) as test_client:
        app.dependency_overrides[get_mpesa_client] = lambda: fake_mpesa
        app.dependency_overrides[get_callback_handler] = lambda: handler
        app.dependency_overrides[get_entitlement_service] = entitlement_override
        yield test_client
    app.dependency_overrides.clear()
