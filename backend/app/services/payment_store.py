"""
Payment Store — Durable access to PaymentAttempt rows.

All mutations of an attempt after initiation go through
apply_confirmation(), a single conditional UPDATE guarded by the
non-terminal status predicate. Concurrent deliveries of the same callback
therefore race inside the database, not in application code: exactly one
UPDATE matches, every other one affects zero rows.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.models.payment import (
    PaymentAttempt, NON_TERMINAL_STATUSES, STATUS_COMPLETED, STATUS_PROCESSING,
)

SORTABLE_COLUMNS = {
    "created_at": PaymentAttempt.created_at,
    "updated_at": PaymentAttempt.updated_at,
    "amount": PaymentAttempt.amount,
    "status": PaymentAttempt.status,
    "phone_number": PaymentAttempt.phone_number,
    "expires_at": PaymentAttempt.expires_at,
}


class PaymentStore:
    """Repository over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def create_attempt(
        self,
        merchant_request_id: str,
        checkout_request_id: str,
        phone_number: str,
        amount: int,
        plan_description: str,
        status: str = STATUS_PROCESSING,
        result_description: Optional[str] = None,
    ) -> PaymentAttempt:
        attempt = PaymentAttempt(
            merchant_request_id=merchant_request_id,
            checkout_request_id=checkout_request_id,
            phone_number=phone_number,
            amount=amount,
            plan_description=plan_description,
            status=status,
            result_description=result_description,
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(attempt)
        return attempt

    def get_by_checkout_id(self, checkout_request_id: str) -> Optional[PaymentAttempt]:
        return (
            self.db.query(PaymentAttempt)
            .filter(PaymentAttempt.checkout_request_id == checkout_request_id)
            .first()
        )

    def find_by_correlation(
        self,
        checkout_request_id: Optional[str],
        merchant_request_id: Optional[str],
    ) -> Optional[PaymentAttempt]:
        """Look up by CheckoutRequestID, falling back to MerchantRequestID."""
        if checkout_request_id:
            attempt = self.get_by_checkout_id(checkout_request_id)
            if attempt:
                return attempt
        if merchant_request_id:
            return (
                self.db.query(PaymentAttempt)
                .filter(PaymentAttempt.merchant_request_id == merchant_request_id)
                .first()
            )
        return None

    def apply_confirmation(self, attempt_id: int, fields: Dict) -> bool:
        """Atomically write a terminal outcome if the attempt is still open.

        Returns True if this call made the transition, False if the attempt
        had already reached a terminal state (or no longer exists).
        """
        stmt = (
            update(PaymentAttempt)
            .where(
                PaymentAttempt.id == attempt_id,
                PaymentAttempt.status.in_(NON_TERMINAL_STATUSES),
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result.rowcount == 1

    def latest_completed_for_phone(self, phone_number: str) -> Optional[PaymentAttempt]:
        """Most recently created Completed attempt; older ones are superseded."""
        return (
            self.db.query(PaymentAttempt)
            .filter(
                PaymentAttempt.phone_number == phone_number,
                PaymentAttempt.status == STATUS_COMPLETED,
            )
            .order_by(PaymentAttempt.created_at.desc(), PaymentAttempt.id.desc())
            .first()
        )

    def list_attempts(
        self,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
        sort: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[PaymentAttempt], int]:
        query = self.db.query(PaymentAttempt)
        if status:
            query = query.filter(PaymentAttempt.status == status)
        total = query.count()

        column = SORTABLE_COLUMNS.get(sort, PaymentAttempt.created_at)
        ordering = column.desc() if descending else column.asc()
        tiebreak = PaymentAttempt.id.desc() if descending else PaymentAttempt.id.asc()
        attempts = query.order_by(ordering, tiebreak).offset(offset).limit(limit).all()
        return attempts, total

    def status_summary(self) -> Dict:
        counts = dict(
            self.db.query(PaymentAttempt.status, func.count(PaymentAttempt.id))
            .group_by(PaymentAttempt.status)
            .all()
        )
        revenue = (
            self.db.query(func.coalesce(func.sum(PaymentAttempt.amount), 0))
            .filter(PaymentAttempt.status == STATUS_COMPLETED)
            .scalar()
        )
        return {
            "total": sum(counts.values()),
            "by_status": counts,
            "completed_amount": int(revenue or 0),
        }

    def count_active_entitlements(self, now: datetime) -> int:
        """Phones whose most recent Completed attempt has not expired yet.

        Same rule as latest_completed_for_phone(): an older unexpired
        purchase does not count once a newer one exists.
        """
        ranked = (
            self.db.query(
                PaymentAttempt.expires_at.label("expires_at"),
                func.row_number()
                .over(
                    partition_by=PaymentAttempt.phone_number,
                    order_by=(PaymentAttempt.created_at.desc(), PaymentAttempt.id.desc()),
                )
                .label("rank"),
            )
            .filter(PaymentAttempt.status == STATUS_COMPLETED)
            .subquery()
        )
        return (
            self.db.query(func.count())
            .select_from(ranked)
            .filter(ranked.c.rank == 1, ranked.c.expires_at > now)
            .scalar()
            or 0
        )
