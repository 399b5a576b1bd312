"""
M-Pesa Wire Helpers — Timestamps, STK passwords and Basic auth headers.
"""
import base64
from datetime import datetime

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def provider_timestamp(now: datetime | None = None) -> str:
    """Request timestamp in the YYYYMMDDHHmmss form Daraja expects."""
    return (now or datetime.utcnow()).strftime(TIMESTAMP_FORMAT)


def generate_stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """STK push password: Base64(shortcode + passkey + timestamp)."""
    raw = f"{shortcode}{passkey}{timestamp}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def basic_auth_header(consumer_key: str, consumer_secret: str) -> str:
    token = base64.b64encode(f"{consumer_key}:{consumer_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def parse_transaction_date(value) -> datetime | None:
    """Parse a callback TransactionDate (e.g. 20240101120000) as naive UTC.

    The value arrives as a 14-digit number or string. Anything else,
    including impossible calendar dates, yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if len(text) != 14 or not text.isdigit():
        return None
    try:
        return datetime(
            year=int(text[0:4]),
            month=int(text[4:6]),
            day=int(text[6:8]),
            hour=int(text[8:10]),
            minute=int(text[10:12]),
            second=int(text[12:14]),
        )
    except ValueError:
        return None
