from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from errors import ValidationError

CENTS = Decimal("100")
PERCENT_STEP = Decimal("0.01")


def to_cents(value: Union[str, int, float, Decimal], *, field: str = "amount") -> int:
    if isinstance(value, bool):
        raise ValidationError(field, "Invalid amount")
    if isinstance(value, str):
        clean = value.strip().replace("₹", "").replace("$", "").replace(" ", "")
        clean = clean.replace(",", "")
    else:
        clean = str(value)
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValidationError(field, "Invalid amount") from exc
    if not amount.is_finite():
        raise ValidationError(field, "Invalid amount")
    cents = int((amount * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents < 0:
        raise ValidationError(field, "Amount must not be negative")
    return cents


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / CENTS).quantize(PERCENT_STEP)


def format_currency(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}₹{whole:,}.{frac:02d}"


def percentage_of(part: int, whole: int) -> Decimal:
    """Exact part/whole*100. Callers guarantee whole > 0."""
    return Decimal(part) * CENTS / Decimal(whole)


def round_percentage(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_STEP, rounding=ROUND_HALF_UP)
