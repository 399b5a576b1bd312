"""
Callback Handler — Applies M-Pesa STK callbacks to payment attempts.

The route acknowledges the callback as soon as the envelope parses
(parse_callback); the state transition itself runs later as a background
task (CallbackHandler.process) with its own database session. Nothing in
process() can reach the caller any more, so every failure is logged and
swallowed there.

Rules:
  - callbacks for unknown correlation keys are discarded, never upserted
  - callbacks for attempts already in a terminal state are discarded
  - the terminal write is a conditional UPDATE, so concurrent duplicate
    deliveries cannot both apply
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.errors import InvalidRequest
from app.models.payment import (
    STATUS_CANCELLED, STATUS_COMPLETED, STATUS_FAILED, STATUS_TIMEOUT,
)
from app.services.payment_store import PaymentStore
from app.utils.mpesa import parse_transaction_date
from app.utils.plans import duration_hours
from app.utils.validators import normalize_phone_number, parse_amount

logger = logging.getLogger(__name__)

RESULT_SUCCESS = 0
RESULT_CANCELLED = 1032   # Request cancelled by user
RESULT_TIMEOUT = 1037     # DS timeout, user cannot be reached

ACK_BODY = {"ResultCode": 0, "ResultDesc": "Callback received"}

# Outcomes returned by process(), mostly for tests and logs
OUTCOME_APPLIED = "applied"
OUTCOME_UNKNOWN = "unknown"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_REJECTED = "rejected"
OUTCOME_ERROR = "error"


@dataclass
class StkCallback:
    merchant_request_id: Optional[str]
    checkout_request_id: Optional[str]
    result_code: Optional[int]
    result_description: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def correlation(self) -> str:
        return self.checkout_request_id or self.merchant_request_id or "?"


def parse_callback(payload: Any) -> StkCallback:
    """Structural check of the callback envelope.

    Only the shape is validated here: Body.stkCallback must be an object
    carrying at least one correlation ID. Metadata problems are left to
    process() so they can never delay or fail the acknowledgement.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid M-Pesa callback format: body must be a JSON object.")
    body = payload.get("Body")
    stk = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict):
        raise InvalidRequest("Invalid M-Pesa callback format: Missing Body or stkCallback.")

    merchant_request_id = _as_id(stk.get("MerchantRequestID"))
    checkout_request_id = _as_id(stk.get("CheckoutRequestID"))
    if not merchant_request_id and not checkout_request_id:
        raise InvalidRequest("Invalid M-Pesa callback format: Missing request identifiers.")

    return StkCallback(
        merchant_request_id=merchant_request_id,
        checkout_request_id=checkout_request_id,
        result_code=_as_result_code(stk.get("ResultCode")),
        result_description=stk.get("ResultDesc"),
        metadata=_metadata_items(stk.get("CallbackMetadata")),
        raw=payload,
    )


def map_result_code(result_code: Optional[int]) -> str:
    if result_code == RESULT_SUCCESS:
        return STATUS_COMPLETED
    if result_code == RESULT_CANCELLED:
        return STATUS_CANCELLED
    if result_code == RESULT_TIMEOUT:
        return STATUS_TIMEOUT
    return STATUS_FAILED


class CallbackHandler:
    """Background half of the callback endpoint."""

    def __init__(self, session_factory: Callable[[], Session], clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def process(self, callback: StkCallback) -> str:
        """Apply one callback. Never raises."""
        db = None
        try:
            db = self.session_factory()
            return self._apply(PaymentStore(db), callback)
        except Exception:
            logger.exception(
                "CRITICAL: Error processing M-Pesa callback for %s", callback.correlation
            )
            return OUTCOME_ERROR
        finally:
            if db is not None:
                db.close()

    def _apply(self, store: PaymentStore, callback: StkCallback) -> str:
        attempt = store.find_by_correlation(callback.checkout_request_id, callback.merchant_request_id)
        if attempt is None:
            logger.warning(
                "Discarding callback for unknown request %s (merchant %s)",
                callback.checkout_request_id, callback.merchant_request_id,
            )
            return OUTCOME_UNKNOWN

        if attempt.is_terminal:
            logger.info(
                "Ignoring duplicate callback for %s: already %s",
                attempt.checkout_request_id, attempt.status,
            )
            return OUTCOME_DUPLICATE

        status = map_result_code(callback.result_code)
        now = self.clock()
        fields = {
            "status": status,
            "result_code": callback.result_code,
            "result_description": (callback.result_description or "No specific description provided.")[:256],
            "raw_callback": callback.raw,
            "updated_at": now,
        }

        if status == STATUS_COMPLETED:
            completion = self._completion_fields(callback, attempt.plan_description, now)
            if completion is None:
                return OUTCOME_REJECTED
            fields.update(completion)

        if not store.apply_confirmation(attempt.id, fields):
            # Another delivery of this callback won the race
            logger.info("Callback for %s lost the race; no change", attempt.checkout_request_id)
            return OUTCOME_DUPLICATE

        logger.info(
            "Payment %s updated: status=%s result_code=%s",
            attempt.checkout_request_id, status, callback.result_code,
        )
        if status == STATUS_COMPLETED:
            logger.info(
                "[Service Fulfillment] Payment %s completed. Access granted to %s until %s.",
                fields["receipt_number"], fields.get("phone_number", attempt.phone_number),
                fields["expires_at"].isoformat(),
            )
        return OUTCOME_APPLIED

    def _completion_fields(self, callback: StkCallback, plan_description: str, now: datetime) -> Optional[Dict]:
        metadata = callback.metadata
        receipt = metadata.get("MpesaReceiptNumber")
        receipt = str(receipt).strip() if receipt is not None else ""
        if not receipt:
            logger.error(
                "Rejecting successful callback for %s: no MpesaReceiptNumber in metadata",
                callback.correlation,
            )
            return None

        fields = {
            "receipt_number": receipt,
            "expires_at": now + timedelta(hours=duration_hours(plan_description)),
        }

        transaction_date = parse_transaction_date(metadata.get("TransactionDate"))
        if transaction_date is None:
            logger.warning(
                "Unparseable TransactionDate %r for %s",
                metadata.get("TransactionDate"), callback.correlation,
            )
        fields["transaction_date"] = transaction_date

        amount = parse_amount(metadata.get("Amount"))
        if amount is not None:
            fields["amount"] = amount

        phone = normalize_phone_number(metadata.get("PhoneNumber"))
        if phone:
            fields["phone_number"] = phone
        return fields


def _as_id(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_result_code(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _metadata_items(callback_metadata) -> Dict[str, Any]:
    """Flatten CallbackMetadata.Item [{Name, Value}, ...] into a dict."""
    if not isinstance(callback_metadata, dict):
        return {}
    items = callback_metadata.get("Item")
    if not isinstance(items, list):
        return {}
    flattened = {}
    for item in items:
        if isinstance(item, dict) and item.get("Name"):
            flattened[item["Name"]] = item.get("Value")
    return flattened
