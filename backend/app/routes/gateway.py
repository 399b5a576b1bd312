"""
Gateway Routes — Entitlement checks polled by the MikroTik hotspot.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_entitlement_service
from app.schemas.schemas import EntitlementResponse, ErrorResponse
from app.services.entitlement_service import EntitlementService

router = APIRouter(prefix="/api/mikrotik", tags=["Gateway"])


@router.get(
    "/check_payment",
    response_model=EntitlementResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def check_payment(
    phone: Optional[str] = None,
    service: EntitlementService = Depends(get_entitlement_service),
):
    """Does this phone number hold a paid, unexpired session?"""
    return EntitlementResponse(**service.check_entitlement(phone))
