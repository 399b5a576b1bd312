"""
Admin Routes — Payment listing and dashboard figures for the operator.
"""
import hmac
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from app.config import get_settings
from app.dependencies import get_store
from app.errors import InvalidRequest, Unauthorized
from app.models.payment import ALL_STATUSES
from app.schemas.schemas import ErrorResponse, PaymentListResponse, PaymentSummaryResponse
from app.services.payment_store import PaymentStore, SORTABLE_COLUMNS

settings = get_settings()

router = APIRouter(
    prefix="/api/payments",
    tags=["Admin"],
    responses={401: {"model": ErrorResponse}},
)


def require_admin(authorization: Optional[str] = Header(None)):
    """Bearer check against ADMIN_API_TOKEN.

    With no token configured the listing is open in development and
    closed in production.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        if settings.is_production:
            raise Unauthorized("Authentication required.")
        return True

    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Authentication required.")
    supplied = authorization[len("Bearer "):].strip()
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise Unauthorized("Invalid credentials.")
    return True


@router.get("", response_model=PaymentListResponse, responses={400: {"model": ErrorResponse}})
def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    sort: str = "created_at",
    order: int = -1,
    store: PaymentStore = Depends(get_store),
    _admin: bool = Depends(require_admin),
):
    """List payment attempts with optional status filter."""
    if status and status not in ALL_STATUSES:
        raise InvalidRequest(f"Unknown status '{status}'.", details={"allowed": list(ALL_STATUSES)})
    if sort not in SORTABLE_COLUMNS:
        raise InvalidRequest(f"Cannot sort by '{sort}'.", details={"allowed": sorted(SORTABLE_COLUMNS)})

    attempts, total = store.list_attempts(
        status=status,
        offset=(page - 1) * limit,
        limit=limit,
        sort=sort,
        descending=order < 0,
    )
    return {
        "success": True,
        "data": [a.to_dict() for a in attempts],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }


@router.get("/summary", response_model=PaymentSummaryResponse)
def payment_summary(
    store: PaymentStore = Depends(get_store),
    _admin: bool = Depends(require_admin),
):
    """Counts per status, completed revenue and currently active sessions."""
    summary = store.status_summary()
    return PaymentSummaryResponse(
        total=summary["total"],
        by_status=summary["by_status"],
        completed_amount=summary["completed_amount"],
        active_entitlements=store.count_active_entitlements(datetime.utcnow()),
    )
