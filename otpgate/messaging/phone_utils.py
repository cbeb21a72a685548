"""
Phone Utilities
===============
Functions for phone number validation and normalization.
"""

import re
from typing import Optional


def clean_digits(phone: str) -> str:
    """Strip everything but digits."""
    return re.sub(r'\D', '', phone or "")


def validate_mobile(
    phone: str,
    valid_leading_digits: str = "6789",
    length: int = 10,
) -> Optional[str]:
    """
    Validate a national mobile number.

    Args:
        phone: Raw phone number (spaces, dashes allowed)
        valid_leading_digits: Digits a mobile number may start with
        length: Required number of digits

    Returns:
        The digits-only number if valid, otherwise None
    """
    digits = clean_digits(phone)
    if len(digits) != length or not digits or digits[0] not in valid_leading_digits:
        return None
    return digits


def to_international(phone: str, country_code: str = "91") -> str:
    """
    Prefix a national number with its country code, digits only.

    Used by SMS panels that expect e.g. 919812345678.
    """
    digits = clean_digits(phone)
    if len(digits) == 10:
        return f"{country_code}{digits}"
    return digits


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    pattern = r'^\+[1-9]\d{1,14}$'
    return bool(re.match(pattern, phone))


def normalize_phone(phone: str, default_country: str = "91") -> str:
    """
    Normalize a phone number to E.164 format.

    Args:
        phone: Raw phone number
        default_country: Default country code (without +)

    Returns:
        E.164 formatted number
    """
    digits = clean_digits(phone)

    # If already has country code
    if phone.strip().startswith('+'):
        return f"+{digits}"

    # National number
    if len(digits) == 10:
        return f"+{default_country}{digits}"

    # Otherwise, assume it's already a full number
    return f"+{digits}"
