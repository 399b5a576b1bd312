"""
M-Pesa Client — Daraja OAuth and Lipa Na M-Pesa Online (STK push) calls.

Both calls are blocking and never retried; failures surface immediately
to the caller, which owns the retry policy.
"""
import logging
from typing import Dict, Optional

import requests

from app.config import Settings
from app.errors import UpstreamAuthFailure, InternalError
from app.utils.mpesa import basic_auth_header, generate_stk_password, provider_timestamp

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/v1/generate?grant_type=client_credentials"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"


class MpesaClient:
    """Thin Daraja client holding one pooled requests.Session."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.api_base = settings.MPESA_API_BASE_URL.rstrip("/")
        self.timeout = settings.MPESA_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def close(self):
        self.http.close()

    def get_access_token(self) -> str:
        """Fetch a short-lived bearer token with the consumer key/secret."""
        url = f"{self.api_base}{TOKEN_PATH}"
        headers = {
            "Authorization": basic_auth_header(
                self.settings.MPESA_CONSUMER_KEY, self.settings.MPESA_CONSUMER_SECRET
            ),
        }
        try:
            r = self.http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("M-Pesa token request failed: %s", exc)
            raise UpstreamAuthFailure(
                "Failed to authenticate with M-Pesa. Please try again later."
            ) from exc

        if not r.ok:
            logger.error("M-Pesa token request rejected: HTTP %s", r.status_code)
            raise UpstreamAuthFailure(
                "Failed to authenticate with M-Pesa. Please try again later.",
                details=_safe_json(r) or {"status": r.status_code},
            )

        token = (_safe_json(r) or {}).get("access_token")
        if not token:
            logger.error("M-Pesa token response carried no access_token")
            raise UpstreamAuthFailure(
                "M-Pesa authentication failed unexpectedly: No access token received."
            )
        return token

    def build_stk_payload(self, amount: int, phone: str, plan_description: str, timestamp: str) -> Dict:
        shortcode = self.settings.MPESA_BUSINESS_SHORTCODE
        return {
            "BusinessShortCode": shortcode,
            "Password": generate_stk_password(shortcode, self.settings.MPESA_PASSKEY, timestamp),
            "Timestamp": timestamp,
            "TransactionType": self.settings.MPESA_TRANSACTION_TYPE,
            "Amount": amount,
            "PartyA": phone,
            "PartyB": shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self.settings.MPESA_CALLBACK_URL,
            "AccountReference": plan_description,
            "TransactionDesc": f"Payment for {plan_description} via {self.settings.MPESA_ACCOUNT_NAME}",
        }

    def stk_push(self, access_token: str, amount: int, phone: str, plan_description: str) -> Dict:
        """Submit an STK push and return Daraja's JSON body as-is.

        Acceptance is signalled by ResponseCode == "0"; interpreting the body
        is left to the caller. A body that is not a JSON object is an
        unexpected provider response.
        """
        url = f"{self.api_base}{STK_PUSH_PATH}"
        payload = self.build_stk_payload(amount, phone, plan_description, provider_timestamp())
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            r = self.http.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("M-Pesa STK push request failed: %s", exc)
            raise InternalError("Could not reach M-Pesa. Please try again later.") from exc

        logger.debug("stk_push -> %s", r.status_code)
        body = _safe_json(r)
        if not isinstance(body, dict):
            logger.error("M-Pesa STK push returned a non-JSON body: HTTP %s", r.status_code)
            raise InternalError(
                "Unexpected response from M-Pesa.",
                details={"status": r.status_code},
            )
        return body


def _safe_json(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return None
