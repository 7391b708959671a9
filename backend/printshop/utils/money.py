import math
from decimal import Decimal, ROUND_HALF_UP

from printshop.errors import InvalidCurrency, ValidationError

CURRENCIES = {
    "SDG": {"symbol": "ج.س", "name": "Sudanese Pound", "code": "SDG"},
    "AED": {"symbol": "د.إ", "name": "UAE Dirham", "code": "AED"},
    "SAR": {"symbol": "ر.س", "name": "Saudi Riyal", "code": "SAR"},
    "EGP": {"symbol": "ج.م", "name": "Egyptian Pound", "code": "EGP"},
    "USD": {"symbol": "$", "name": "US Dollar", "code": "USD"},
}

_CENT = Decimal("0.01")

# Tolerance for comparing float amounts that were each rounded to cents.
EPSILON = 0.005


def ensure_finite(name: str, value: float) -> float:
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number")
    return value


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def round_percent(part: int | float, whole: int | float) -> int:
    """Percentage of part over whole, rounded half-up to an integer."""
    if not whole:
        return 0
    ratio = Decimal(str(part)) * 100 / Decimal(str(whole))
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_currency(code: str) -> str:
    if code not in CURRENCIES:
        raise InvalidCurrency(f"Unsupported currency '{code}'")
    return code
