"""
Cosmetic input formatting for form fields.

These never validate; they only reshape what the user typed.
"""

import re

ACCOUNT_NUMBER_LENGTH = 10
PHONE_MAX_DIGITS = 11

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def format_account_number(value: str) -> str:
    """Strip non-digits and cap at 10 characters"""
    return digits_only(value)[:ACCOUNT_NUMBER_LENGTH]


def format_phone_number(value: str) -> str:
    """
    Group phone digits as XXXX-XXX-XXXX while typing.

    >>> format_phone_number("08031234567")
    '0803-123-4567'
    >>> format_phone_number("080312")
    '0803-12'
    """
    digits = digits_only(value)[:PHONE_MAX_DIGITS]
    if len(digits) <= 4:
        return digits
    if len(digits) <= 7:
        return f"{digits[:4]}-{digits[4:]}"
    return f"{digits[:4]}-{digits[4:7]}-{digits[7:]}"
