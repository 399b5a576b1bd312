"""
Payment Attempt Model — One row per STK push accepted by M-Pesa.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from app.database import Base

STATUS_PENDING = "Pending"
STATUS_PROCESSING = "Processing"
STATUS_COMPLETED = "Completed"
STATUS_FAILED = "Failed"
STATUS_CANCELLED = "Cancelled"
STATUS_TIMEOUT = "Timeout"

NON_TERMINAL_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED, STATUS_CANCELLED, STATUS_TIMEOUT)
ALL_STATUSES = NON_TERMINAL_STATUSES + TERMINAL_STATUSES


class PaymentAttempt(Base):
    __tablename__ = "payment_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    # Correlation key issued by M-Pesa when the STK push is accepted
    merchant_request_id = Column(String(64), unique=True, nullable=False, index=True)
    checkout_request_id = Column(String(64), unique=True, nullable=False, index=True)

    phone_number = Column(String(12), nullable=False, index=True)   # 2547XXXXXXXX
    amount = Column(Integer, nullable=False)                         # Whole KES
    plan_description = Column(String(128), nullable=False)

    status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    # Statuses: Pending | Processing → Completed | Failed | Cancelled | Timeout

    result_code = Column(Integer, nullable=True)
    result_description = Column(String(256), nullable=True)
    receipt_number = Column(String(32), unique=True, nullable=True, index=True)  # Only when Completed
    transaction_date = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)                                # Only when Completed
    raw_callback = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchantRequestID": self.merchant_request_id,
            "checkoutRequestID": self.checkout_request_id,
            "phoneNumber": self.phone_number,
            "amount": self.amount,
            "planDescription": self.plan_description,
            "status": self.status,
            "resultCode": self.result_code,
            "resultDesc": self.result_description,
            "receiptNumber": self.receipt_number,
            "transactionDate": self.transaction_date.isoformat() if self.transaction_date else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
