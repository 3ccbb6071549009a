"""
Values -- Decimal helpers shared by the domain layer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    No floats anywhere in ledger arithmetic.  Caller-supplied numbers are
    coerced through ``to_decimal`` at the service boundary and every amount
    written to the ledger passes through ``round_money``.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Coerce a caller-supplied number into a Decimal.

    Floats are routed through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.

    Raises:
        ValueError: If value cannot be converted to a finite Decimal.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for amounts written to the
    ledger.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
