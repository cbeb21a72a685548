"""
OTP Generation
==============
Secure random codes and constant-time comparison.
"""

import hmac
import secrets

MIN_LENGTH = 4
MAX_LENGTH = 6


def generate_otp(length: int = 4) -> str:
    """
    Generate a uniformly random numeric OTP.

    Args:
        length: Number of digits (4 to 6)

    Returns:
        OTP string, zero-padded to length
    """
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise ValueError(f"OTP length must be between {MIN_LENGTH} and {MAX_LENGTH}")
    return str(secrets.randbelow(10 ** length)).zfill(length)


def codes_match(submitted: str, stored: str) -> bool:
    """
    Compare a submitted code with the stored one.

    Uses constant-time comparison to prevent timing attacks.
    """
    return hmac.compare_digest(str(submitted).strip().encode(), stored.encode())
