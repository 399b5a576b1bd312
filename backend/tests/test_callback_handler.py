from datetime import datetime, timedelta

import pytest

from app.errors import InvalidRequest
from app.models.payment import (
    STATUS_CANCELLED, STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, STATUS_TIMEOUT,
)
from app.services.callback_handler import (
    OUTCOME_APPLIED, OUTCOME_DUPLICATE, OUTCOME_ERROR, OUTCOME_REJECTED, OUTCOME_UNKNOWN,
    CallbackHandler, map_result_code, parse_callback,
)

from conftest import CHECKOUT_ID, MERCHANT_ID, callback_payload


@pytest.fixture
def attempt(store):
    return store.create_attempt(
        merchant_request_id=MERCHANT_ID,
        checkout_request_id=CHECKOUT_ID,
        phone_number="254712345678",
        amount=20,
        plan_description="3-Hour Unlimited",
    )


def reload(store):
    store.db.expire_all()
    return store.get_by_checkout_id(CHECKOUT_ID)


# ─── Envelope parsing ────────────────────────────────────────────────

def test_parse_callback_extracts_fields():
    cb = parse_callback(callback_payload())
    assert cb.merchant_request_id == MERCHANT_ID
    assert cb.checkout_request_id == CHECKOUT_ID
    assert cb.result_code == 0
    assert cb.metadata["MpesaReceiptNumber"] == "ABC123"
    assert cb.metadata["Balance"] is None


def test_parse_callback_accepts_string_result_code():
    payload = callback_payload(result_code=1032)
    payload["Body"]["stkCallback"]["ResultCode"] = "1032"
    assert parse_callback(payload).result_code == 1032


@pytest.mark.parametrize("payload", [
    None,
    [],
    {},
    {"Body": None},
    {"Body": {"stkCallback": "nope"}},
    {"Body": {"stkCallback": {"ResultCode": 0}}},
])
def test_parse_callback_rejects_malformed_envelopes(payload):
    with pytest.raises(InvalidRequest):
        parse_callback(payload)


def test_parse_callback_tolerates_broken_metadata():
    payload = callback_payload()
    payload["Body"]["stkCallback"]["CallbackMetadata"] = {"Item": "garbage"}
    assert parse_callback(payload).metadata == {}


@pytest.mark.parametrize("code, status", [
    (0, STATUS_COMPLETED),
    (1032, STATUS_CANCELLED),
    (1037, STATUS_TIMEOUT),
    (1, STATUS_FAILED),
    (2001, STATUS_FAILED),
    (None, STATUS_FAILED),
])
def test_map_result_code(code, status):
    assert map_result_code(code) == status


# ─── State transitions ───────────────────────────────────────────────

def test_success_completes_attempt_with_exact_expiry(handler, attempt, store, clock):
    outcome = handler.process(parse_callback(callback_payload()))
    assert outcome == OUTCOME_APPLIED

    row = reload(store)
    assert row.status == STATUS_COMPLETED
    assert row.result_code == 0
    assert row.receipt_number == "ABC123"
    assert row.transaction_date == datetime(2024, 1, 1, 12, 0, 0)
    assert row.expires_at == clock.now + timedelta(hours=3)
    assert row.updated_at == clock.now
    assert row.raw_callback["Body"]["stkCallback"]["CheckoutRequestID"] == CHECKOUT_ID


@pytest.mark.parametrize("code, status", [
    (1032, STATUS_CANCELLED),
    (1037, STATUS_TIMEOUT),
    (2001, STATUS_FAILED),
])
def test_unsuccessful_results_are_terminal_without_entitlement(handler, attempt, store, code, status):
    assert handler.process(parse_callback(callback_payload(result_code=code))) == OUTCOME_APPLIED
    row = reload(store)
    assert row.status == status
    assert row.result_code == code
    assert row.expires_at is None
    assert row.receipt_number is None


def test_duplicate_delivery_changes_nothing(handler, attempt, store, clock):
    payload = callback_payload()
    handler.process(parse_callback(payload))
    first = reload(store).to_dict()

    clock.now = clock.now + timedelta(minutes=5)
    assert handler.process(parse_callback(payload)) == OUTCOME_DUPLICATE
    assert reload(store).to_dict() == first


def test_late_confirmation_after_terminal_state_is_ignored(handler, attempt, store):
    handler.process(parse_callback(callback_payload(result_code=1032)))
    assert handler.process(parse_callback(callback_payload(result_code=0))) == OUTCOME_DUPLICATE

    row = reload(store)
    assert row.status == STATUS_CANCELLED
    assert row.expires_at is None
    assert row.receipt_number is None


def test_unknown_correlation_key_never_creates_a_record(handler, store):
    payload = callback_payload(merchant_id="forged-m", checkout_id="forged-c")
    assert handler.process(parse_callback(payload)) == OUTCOME_UNKNOWN
    assert store.list_attempts()[1] == 0
    assert store.latest_completed_for_phone("254712345678") is None


def test_merchant_id_fallback(handler, attempt, store):
    payload = callback_payload(checkout_id="some-other-checkout")
    assert handler.process(parse_callback(payload)) == OUTCOME_APPLIED
    assert reload(store).status == STATUS_COMPLETED


def test_success_without_receipt_is_not_applied(handler, attempt, store):
    assert handler.process(parse_callback(callback_payload(receipt=None))) == OUTCOME_REJECTED
    row = reload(store)
    assert row.status == STATUS_PROCESSING
    assert row.expires_at is None


def test_bad_transaction_date_still_completes(handler, attempt, store):
    handler.process(parse_callback(callback_payload(transaction_date="yesterday")))
    row = reload(store)
    assert row.status == STATUS_COMPLETED
    assert row.transaction_date is None


def test_metadata_amount_and_phone_update_the_record(handler, attempt, store):
    handler.process(parse_callback(callback_payload(amount=50, phone="254798765432")))
    row = reload(store)
    assert row.amount == 50
    assert row.phone_number == "254798765432"


def test_unusable_metadata_phone_keeps_initiation_phone(handler, attempt, store):
    handler.process(parse_callback(callback_payload(phone="not-a-number")))
    assert reload(store).phone_number == "254712345678"


def test_lost_race_is_reported_as_duplicate(handler, attempt, store):
    """A delivery that read the row as open but lost the conditional write."""
    cb = parse_callback(callback_payload())
    other = parse_callback(callback_payload(result_code=1032))
    handler.process(other)

    class StaleStore:
        def __init__(self, real, stale):
            self.real, self.stale = real, stale

        def find_by_correlation(self, *ids):
            return self.stale

        def apply_confirmation(self, attempt_id, fields):
            return self.real.apply_confirmation(attempt_id, fields)

    stale_row = type("Row", (), {
        "id": attempt.id, "is_terminal": False, "plan_description": attempt.plan_description,
        "checkout_request_id": CHECKOUT_ID, "phone_number": attempt.phone_number, "status": STATUS_PROCESSING,
    })()
    assert handler._apply(StaleStore(store, stale_row), cb) == OUTCOME_DUPLICATE
    assert reload(store).status == STATUS_CANCELLED


def test_duplicate_receipt_is_swallowed(handler, store, attempt):
    store.create_attempt(
        merchant_request_id="m-2", checkout_request_id="c-2",
        phone_number="254712345678", amount=20, plan_description="1-Hour",
    )
    handler.process(parse_callback(callback_payload()))
    outcome = handler.process(parse_callback(callback_payload(merchant_id="m-2", checkout_id="c-2")))
    assert outcome == OUTCOME_ERROR

    store.db.expire_all()
    assert store.get_by_checkout_id("c-2").status == STATUS_PROCESSING


def test_store_outage_is_swallowed(clock):
    def broken_factory():
        raise RuntimeError("database unavailable")

    handler = CallbackHandler(broken_factory, clock=clock)
    assert handler.process(parse_callback(callback_payload())) == OUTCOME_ERROR
