from app.utils.validators import normalize_phone_number, parse_amount
from app.utils.plans import duration_hours, bandwidth_class

__all__ = [
    "normalize_phone_number", "parse_amount",
    "duration_hours", "bandwidth_class",
]
