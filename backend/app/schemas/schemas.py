"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime, timezone
from typing import Optional, Dict, List, Union
from pydantic import (
    AliasChoices, BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_serializer,
)


def _utc_iso(value: Optional[datetime]) -> Optional[str]:
    """Stored datetimes are naive UTC; render them with an explicit Z."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ──────────────── Payment ────────────────

class PaymentInitRequest(BaseModel):
    """Fields are optional here so that missing values produce our own 400."""
    model_config = ConfigDict(populate_by_name=True)

    # Strict so that JSON true is not coerced to 1 before parse_amount sees it
    amount: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    phone: Optional[str] = Field(None, validation_alias=AliasChoices("phone", "phoneNumber"))
    plan_description: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("planDescription", "packageDescription", "plan_description"),
    )


class PaymentInitResponse(BaseModel):
    success: bool = True
    message: str = "Payment request sent successfully. Please complete the transaction on your phone."
    customerMessage: str
    checkoutRequestID: str


class PaymentStatusResponse(BaseModel):
    success: bool = True
    status: str
    message: str


# ──────────────── Gateway ────────────────

class EntitlementResponse(BaseModel):
    success: bool = True
    paid: bool
    amount: Optional[int] = None
    plan: Optional[str] = None
    bandwidthClass: Optional[str] = None
    paidAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    receipt: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    @field_serializer("paidAt", "expiresAt")
    def _serialize_dt(self, value: Optional[datetime]):
        return _utc_iso(value)


# ──────────────── Admin ────────────────

class PaymentListMeta(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class PaymentListResponse(BaseModel):
    success: bool = True
    data: List[Dict]
    meta: PaymentListMeta


class PaymentSummaryResponse(BaseModel):
    success: bool = True
    total: int
    by_status: Dict[str, int]
    completed_amount: int
    active_entitlements: int


# ──────────────── Generic ────────────────

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[Union[Dict, List, str]] = None
