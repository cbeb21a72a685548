"""
Messaging Utilities
===================
Phone number handling and OTP message text.
"""

from .phone_utils import (
    clean_digits,
    normalize_phone,
    to_international,
    validate_e164,
    validate_mobile,
)
from .templates import DEFAULT_OTP_TEMPLATE, build_otp_message

__all__ = [
    # Phone
    "clean_digits",
    "normalize_phone",
    "to_international",
    "validate_e164",
    "validate_mobile",
    # Templates
    "DEFAULT_OTP_TEMPLATE",
    "build_otp_message",
]
