"""
Values -- exact decimal arithmetic for quantities and amounts.

Responsibility:
    Converts caller input into ``Decimal``, rounds to currency precision with
    ROUND_HALF_UP, and moves amounts between decimal and minor-unit
    (integer paise/cents) representations without losing precision.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - ValidationError when input is not a finite number (floats are accepted
      only through their shortest ``str`` form; booleans are rejected).
    - ValidationError when a conversion would drop fractional digits.
    - ValidationError when rounding overflows the decimal context precision.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from fulfillment_kernel.domain.currency import CurrencyRegistry
from fulfillment_kernel.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_CURRENCY = "INR"


def to_decimal(value: Decimal | int | str | float, field: str | None = None) -> Decimal:
    """Convert a number-like value to a finite Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), never the
    binary expansion.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Expected a number, got {value!r}", field=field, value=value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(
                f"Not a decimal number: {value!r}", field=field, value=value
            ) from exc
    else:
        raise ValidationError(
            f"Expected a number, got {type(value).__name__}", field=field, value=value
        )
    if not result.is_finite():
        raise ValidationError(f"Not a finite number: {value!r}", field=field, value=value)
    return result


def quantum_for(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def _quantize(value: Decimal, places: int) -> Decimal:
    try:
        return value.quantize(quantum_for(places), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError(
            f"Amount {value} is too large to hold {places} decimal places",
            value=str(value),
        ) from exc


def round_amount(value: Decimal, places: int = 2) -> Decimal:
    """Round to ``places`` fractional digits using ROUND_HALF_UP.

    Raises:
        ValidationError: the rounded value exceeds the decimal context precision.
    """
    return _quantize(value, places)


def currency_places(currency: str = DEFAULT_CURRENCY) -> int:
    return CurrencyRegistry.get_decimal_places(currency)


def has_exact_precision(value: Decimal, places: int) -> bool:
    """True when ``value`` needs no more than ``places`` fractional digits."""
    return value == _quantize(value, places)


def require_currency_precision(
    value: Decimal, currency: str = DEFAULT_CURRENCY, field: str | None = None
) -> Decimal:
    """Return ``value`` unchanged, or raise if rounding would alter it."""
    places = currency_places(currency)
    if not has_exact_precision(value, places):
        raise ValidationError(
            f"Amount {value} has more than {places} fractional digits for {currency}",
            field=field,
            value=str(value),
        )
    return value


def to_minor_units(amount: Decimal, currency: str = DEFAULT_CURRENCY) -> int:
    """Decimal amount to integer minor units (e.g. rupees to paise).

    Raises ValidationError instead of rounding sub-minor-unit amounts.
    """
    require_currency_precision(amount, currency, field="amount")
    info = CurrencyRegistry.get_info(currency)
    factor = info.minor_unit_factor if info else 10 ** CurrencyRegistry.DEFAULT_DECIMAL_PLACES
    return int(amount * factor)


def from_minor_units(units: int, currency: str = DEFAULT_CURRENCY) -> Decimal:
    """Integer minor units to a Decimal at currency precision."""
    if isinstance(units, bool) or not isinstance(units, int):
        raise ValidationError(
            f"Minor units must be an integer, got {units!r}", field="units", value=units
        )
    places = currency_places(currency)
    return _quantize(Decimal(units).scaleb(-places), places)
