from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
# Largest amount a 12-digit, 2-place money column can store
MAX_MONEY = Decimal("9999999999.99")


def _to_decimal(value):
    """
    Best-effort numeric parse. Returns None for anything that is not a
    finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        raw = str(value).replace(",", "").strip()
        if not raw:
            return None
        try:
            number = Decimal(raw)
        except (InvalidOperation, ValueError):
            return None
    if not number.is_finite():
        return None
    return number


def round_money(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


def to_money(value) -> Decimal:
    """
    "1,250.505" -> Decimal("1250.51"); junk, NaN and infinities -> 0.00
    Anything beyond MAX_MONEY either way is treated as junk too.
    """
    number = _to_decimal(value)
    if number is None or abs(number) > MAX_MONEY:
        return ZERO
    return round_money(number)


def to_percent(value, default=None) -> Decimal:
    if default is None:
        default = getattr(settings, "ESCROW_DEFAULT_FEE_PERCENT", 10)
    number = _to_decimal(value)
    if number is None:
        number = Decimal(str(default))
    return min(HUNDRED, max(Decimal("0"), number))


def to_int(value):
    number = _to_decimal(value)
    if number is None:
        return None
    return int(number)


def clamp_int(value, minimum: int, maximum: int) -> int:
    number = to_int(value)
    if number is None:
        return minimum
    return max(minimum, min(maximum, number))


def normalize_currency(value, default=None) -> str:
    code = str(value or "").strip().upper()
    if code:
        return code
    if default is None:
        default = getattr(settings, "ESCROW_DEFAULT_CURRENCY", "EGP")
    return str(default).strip().upper()


def net_amount(gross, fee_percent) -> Decimal:
    """Freelancer share after the platform fee, half-up to cents."""
    gross = to_money(gross)
    fee_percent = to_percent(fee_percent)
    return round_money(gross * (Decimal("1") - fee_percent / HUNDRED))
