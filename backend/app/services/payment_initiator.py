"""
Payment Initiator — Validates a purchase and sends the STK push.

A "success" is only ever returned when M-Pesa itself accepted the push.
Local persistence after that point is best-effort: the callback will
still arrive and the status endpoint reports "Processing" until it does.
"""
import logging
from typing import Any, Dict, Optional

from app.errors import InvalidRequest, PaymentRejected
from app.models.payment import STATUS_FAILED, STATUS_PROCESSING
from app.services.mpesa_client import MpesaClient
from app.services.payment_store import PaymentStore
from app.utils.validators import normalize_phone_number, parse_amount

logger = logging.getLogger(__name__)

ACCEPTED_RESPONSE_CODE = "0"
DEFAULT_CUSTOMER_MESSAGE = "Awaiting user payment confirmation."


class PaymentInitiator:
    """Handles the synchronous half of a purchase."""

    def __init__(self, client: MpesaClient, store: PaymentStore):
        self.client = client
        self.store = store

    def initiate(self, amount: Any, phone: Optional[str], plan_description: Optional[str]) -> Dict:
        """Validate input, push the payment prompt, and record the attempt.

        Raises:
            InvalidRequest: missing fields, bad amount or phone number.
            UpstreamAuthFailure: Daraja refused to issue a token.
            PaymentRejected: Daraja refused the STK push.
            InternalError: Daraja unreachable or returned an unexpected body.

        Returns:
            dict with checkout_request_id and customer_message.
        """
        if _is_blank(amount) or _is_blank(phone) or _is_blank(plan_description):
            raise InvalidRequest(
                "Missing required payment details: amount, phone, or package description."
            )

        parsed_amount = parse_amount(amount)
        if parsed_amount is None:
            raise InvalidRequest(
                "Invalid amount provided. Amount must be a positive whole number."
            )

        normalized_phone = normalize_phone_number(phone)
        if not normalized_phone:
            raise InvalidRequest(
                "Invalid phone number format. Please use a valid Kenyan mobile number "
                "(e.g., 07XXXXXXXX or 01XXXXXXXX)."
            )

        plan = plan_description.strip()
        access_token = self.client.get_access_token()
        response = self.client.stk_push(access_token, parsed_amount, normalized_phone, plan)

        merchant_request_id = response.get("MerchantRequestID")
        checkout_request_id = response.get("CheckoutRequestID")

        if str(response.get("ResponseCode")) != ACCEPTED_RESPONSE_CODE:
            message = (
                response.get("CustomerMessage")
                or response.get("ResponseDescription")
                or response.get("errorMessage")
                or "Unknown error from M-Pesa during STK push initiation."
            )
            logger.warning("STK push rejected for %s: %s", normalized_phone, message)
            self._record_rejection(
                merchant_request_id, checkout_request_id, normalized_phone,
                parsed_amount, plan, message,
            )
            raise PaymentRejected(f"Payment initiation failed: {message}", details=response)

        if not checkout_request_id or not merchant_request_id:
            logger.error("STK push accepted without correlation IDs: %s", response)
            raise PaymentRejected(
                "Payment initiation failed: M-Pesa did not return a checkout reference.",
                details=response,
            )

        try:
            self.store.create_attempt(
                merchant_request_id=merchant_request_id,
                checkout_request_id=checkout_request_id,
                phone_number=normalized_phone,
                amount=parsed_amount,
                plan_description=plan,
                status=STATUS_PROCESSING,
            )
        except Exception:
            logger.exception(
                "Failed to persist accepted STK push %s; awaiting callback anyway",
                checkout_request_id,
            )

        logger.info(
            "STK push accepted: checkout=%s phone=%s amount=%s plan=%r",
            checkout_request_id, normalized_phone, parsed_amount, plan,
        )
        return {
            "checkout_request_id": checkout_request_id,
            "merchant_request_id": merchant_request_id,
            "customer_message": response.get("CustomerMessage") or DEFAULT_CUSTOMER_MESSAGE,
        }

    def _record_rejection(self, merchant_request_id, checkout_request_id, phone, amount, plan, message):
        """Keep a Failed row for audit when Daraja handed back correlation IDs."""
        if not merchant_request_id or not checkout_request_id:
            return
        try:
            self.store.create_attempt(
                merchant_request_id=merchant_request_id,
                checkout_request_id=checkout_request_id,
                phone_number=phone,
                amount=amount,
                plan_description=plan,
                status=STATUS_FAILED,
                result_description=str(message)[:256],
            )
        except Exception:
            logger.exception("Could not record rejected STK push %s", checkout_request_id)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
