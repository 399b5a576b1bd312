"""
API Errors — Tagged error type rendered into the uniform JSON envelope.

Every request-handling failure is raised as an APIError subclass and
converted at the HTTP boundary (see app.main) into:

    {"success": false, "message": "...", "error": <details or null>}

Details are only exposed outside production.
"""
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    UPSTREAM_AUTH_FAILURE = "upstream_auth_failure"
    PAYMENT_REJECTED = "payment_rejected"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


class APIError(Exception):
    """Base error carrying {kind, status_code, message, details}."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_response(self, expose_details: bool) -> dict:
        return {
            "success": False,
            "message": self.message,
            "error": self.details if expose_details else None,
        }


class InvalidRequest(APIError):
    kind = ErrorKind.INVALID_REQUEST
    status_code = 400


class UpstreamAuthFailure(APIError):
    kind = ErrorKind.UPSTREAM_AUTH_FAILURE
    status_code = 502


class PaymentRejected(APIError):
    kind = ErrorKind.PAYMENT_REJECTED
    status_code = 400


class Unauthorized(APIError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401


class InternalError(APIError):
    kind = ErrorKind.INTERNAL
    status_code = 500
