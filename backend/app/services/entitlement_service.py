"""
Entitlement Service — Read-side answers for the portal and the hotspot gateway.
"""
from datetime import datetime
from typing import Callable, Dict

from app.errors import InvalidRequest
from app.models.payment import (
    STATUS_CANCELLED, STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, STATUS_TIMEOUT,
)
from app.services.payment_store import PaymentStore
from app.utils.plans import bandwidth_class
from app.utils.validators import normalize_phone_number

STATUS_MESSAGES = {
    STATUS_COMPLETED: "Your payment was successful. Kindly wait for service fulfillment.",
    STATUS_CANCELLED: "You cancelled the M-Pesa payment prompt.",
    STATUS_FAILED: "The M-Pesa payment failed. Please try again.",
    STATUS_TIMEOUT: "The M-Pesa payment timed out. Please try again.",
}
PENDING_MESSAGE = "Status is pending."
NOT_FOUND_MESSAGE = "Payment record not found. Awaiting callback."


class EntitlementService:
    def __init__(self, store: PaymentStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def get_attempt_status(self, checkout_request_id: str) -> Dict:
        """Status of one attempt. An unknown ID is reported as still processing.

        The portal starts polling right after initiation, possibly before the
        attempt row is visible, so a missing row is not an error.
        """
        attempt = self.store.get_by_checkout_id(checkout_request_id)
        if attempt is None:
            return {"status": STATUS_PROCESSING, "message": NOT_FOUND_MESSAGE}
        return {
            "status": attempt.status,
            "message": STATUS_MESSAGES.get(attempt.status, PENDING_MESSAGE),
        }

    def check_entitlement(self, phone) -> Dict:
        """Whether a phone number currently has paid, unexpired access.

        Only the most recent completed purchase counts; earlier ones are
        superseded rather than added together.
        """
        if phone is None or not str(phone).strip():
            raise InvalidRequest("Phone number is required.")
        normalized = normalize_phone_number(phone)
        if not normalized:
            raise InvalidRequest("Invalid phone number format.")

        attempt = self.store.latest_completed_for_phone(normalized)
        if attempt is None:
            return {"paid": False}

        if attempt.expires_at is None or self.clock() >= attempt.expires_at:
            return {"paid": False, "reason": "expired", "message": "Subscription expired."}

        return {
            "paid": True,
            "amount": attempt.amount,
            "plan": attempt.plan_description,
            "bandwidthClass": bandwidth_class(attempt.plan_description),
            "paidAt": attempt.created_at,
            "expiresAt": attempt.expires_at,
            "receipt": attempt.receipt_number,
        }
