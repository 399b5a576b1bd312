"""
Validators — Normalization of Kenyan mobile numbers and payment amounts.
"""
import re
from decimal import Decimal, InvalidOperation

# 07XXXXXXXX / 01XXXXXXXX or the 2547XXXXXXXX / 2541XXXXXXXX international form
LOCAL_MSISDN = re.compile(r"0([17]\d{8})")
INTERNATIONAL_MSISDN = re.compile(r"254[17]\d{8}")


def normalize_phone_number(phone) -> str | None:
    """Return the canonical 254XXXXXXXXX form of a Kenyan mobile number.

    Surrounding whitespace and a single leading '+' are ignored. Returns
    None for anything that is not a Safaricom-shaped mobile number.
    Idempotent: normalizing an already canonical number returns it as-is.
    """
    if phone is None or isinstance(phone, bool):
        return None
    cleaned = str(phone).strip()
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    local = LOCAL_MSISDN.fullmatch(cleaned)
    if local:
        return "254" + local.group(1)
    if INTERNATIONAL_MSISDN.fullmatch(cleaned):
        return cleaned
    return None


def parse_amount(value) -> int | None:
    """Parse a payment amount into whole shillings.

    Accepts ints, integral floats and numeric strings ("20", "20.00").
    Returns None for non-numeric, non-positive or fractional amounts;
    M-Pesa only takes integral amounts and we never round.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    if amount != amount.to_integral_value():
        return None
    return int(amount)
