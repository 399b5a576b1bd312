"""
Payment Routes — STK push initiation and per-attempt status polling.
"""
from fastapi import APIRouter, Depends, Request

from app.config import get_settings
from app.dependencies import get_entitlement_service, get_payment_initiator
from app.schemas.schemas import (
    ErrorResponse, PaymentInitRequest, PaymentInitResponse, PaymentStatusResponse,
)
from app.services.entitlement_service import EntitlementService
from app.services.payment_initiator import PaymentInitiator
from app.utils.rate_limiter import RateLimiter, initiation_keys
from app.utils.validators import normalize_phone_number

settings = get_settings()

router = APIRouter(prefix="/api/payment", tags=["Payment"])

initiation_limiter = RateLimiter(
    requests=settings.INITIATE_RATE_LIMIT, window=settings.INITIATE_RATE_WINDOW
)


@router.post(
    "/initiate",
    response_model=PaymentInitResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
def initiate_payment(
    payload: PaymentInitRequest,
    request: Request,
    initiator: PaymentInitiator = Depends(get_payment_initiator),
):
    """Send an M-Pesa prompt to the customer's phone."""
    client_ip = request.client.host if request.client else None
    initiation_limiter.hit(*initiation_keys(normalize_phone_number(payload.phone), client_ip))

    result = initiator.initiate(payload.amount, payload.phone, payload.plan_description)
    return PaymentInitResponse(
        customerMessage=result["customer_message"],
        checkoutRequestID=result["checkout_request_id"],
    )


@router.get(
    "/status/{checkout_request_id}",
    response_model=PaymentStatusResponse,
    responses={500: {"model": ErrorResponse}},
)
def get_payment_status(
    checkout_request_id: str,
    service: EntitlementService = Depends(get_entitlement_service),
):
    """Poll the outcome of one STK push. Unknown IDs read as still processing."""
    result = service.get_attempt_status(checkout_request_id)
    return PaymentStatusResponse(status=result["status"], message=result["message"])
