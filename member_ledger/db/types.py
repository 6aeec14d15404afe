"""
Module: member_ledger.db.types
Responsibility: Money coercion and rounding helpers.  Centralizes precision
    and rounding so that every model and service uses identical definitions.
Architecture position: Ledger > DB.  May be imported by models/, domain/ and
    services/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for monetary
      values (two places, ROUND_HALF_UP).
    - No floats anywhere in the ledger.  Floats coming from callers are
      converted through str() so 0.1 becomes Decimal("0.1"), never
      Decimal(0.1000000000000000055...).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")

# Amounts closer to zero than this are treated as zero when deciding whether
# a collection row has been fully unwound.
MONEY_EPSILON = Decimal("0.0001")


def to_money(value) -> Decimal:
    """
    Coerce an int, float, str or Decimal into an unrounded Decimal.

    Raises:
        ValueError: If value cannot be interpreted as a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def round_money(
    value,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for financial values.

    Example:
        round_money(Decimal("3.3333")) -> Decimal("3.33")
    """
    quantize_str = "0." + "0" * decimal_places
    return to_money(value).quantize(Decimal(quantize_str), rounding=rounding)


def clamp_non_negative(value: Decimal) -> Decimal:
    """Clamp a balance at zero; negative balances are never stored."""
    return value if value > ZERO else ZERO
