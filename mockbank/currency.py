"""
Money Handling Module

Amounts and balances are Decimal values quantized to two places. User input
arrives as strings (form fields); persisted data may carry JSON numbers.
NEVER uses float arithmetic for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

CURRENCY_SYMBOLS = "₦$€£"
_IGNORED_CHARACTERS = re.compile(rf"[\s{CURRENCY_SYMBOLS}]")
_AMOUNT_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")

AmountLike = Union[Decimal, str, int, float]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a number or numeric string to a 2dp Decimal.

    Floats are converted through ``str`` so 0.1 stays 0.10 rather than
    0.1000000000000000055511151231257827.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("Amount cannot be a boolean")
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise ValueError(f"Cannot convert '{value}' to an amount")
    if not amount.is_finite():
        raise ValueError(f"Cannot convert '{value}' to an amount")
    try:
        return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount '{value}' is out of range")


def parse_amount(value: Union[str, Decimal, None]) -> Decimal:
    """
    Parse a user-entered amount, tolerating currency symbols, spaces and
    thousands separators ("₦1,250.50" -> Decimal("1250.50")).

    Anything else ("12abc34", "1e3") is rejected, as are amounts with more
    than two decimal places.

    Raises:
        ValueError: If the input is not a plain amount in whole cents
    """
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Cannot convert '{value}' to an amount")
        amount = value
    else:
        if value is None or not str(value).strip():
            raise ValueError("Value must be a non-empty string")

        clean_value = _IGNORED_CHARACTERS.sub('', str(value))

        if ',' in clean_value and '.' in clean_value:
            # Both comma and dot - comma is the thousands separator
            clean_value = clean_value.replace(',', '')
        elif clean_value.count(',') == 1:
            whole, fraction = clean_value.split(',')
            if len(fraction) <= 2:
                clean_value = f"{whole}.{fraction}"
            else:
                clean_value = whole + fraction
        else:
            clean_value = clean_value.replace(',', '')

        if not _AMOUNT_PATTERN.fullmatch(clean_value):
            raise ValueError(f"Cannot convert '{value}' to an amount")
        amount = Decimal(clean_value)

    quantized = to_amount(amount)
    if quantized != amount:
        raise ValueError(f"Amount '{value}' has more than two decimal places")
    return quantized


def amount_to_json(amount: Decimal) -> Union[int, float]:
    """JSON number form used in persisted records (matches existing stored data)"""
    quantized = to_amount(amount)
    if quantized == quantized.to_integral_value():
        return int(quantized)
    return float(quantized)


def format_amount(amount: AmountLike) -> str:
    """Plain 2dp string, e.g. '1250.50'"""
    return f"{to_amount(amount):.2f}"


def format_naira(amount: AmountLike, symbol: str = "₦") -> str:
    """Display form with symbol and thousands separators, e.g. '₦1,250.50'"""
    value = to_amount(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
