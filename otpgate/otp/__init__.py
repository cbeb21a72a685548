"""
OTP Generation and Verification
===============================
Attempt-limited, single-use OTPs with expiry.
"""

from .models import VerifyOutcome, VerifyResult
from .generator import generate_otp, codes_match
from .engine import OtpEngine
from .session_token import SessionToken

__all__ = [
    # Models
    "VerifyOutcome",
    "VerifyResult",
    # Generator
    "generate_otp",
    "codes_match",
    # Engine
    "OtpEngine",
    # Session
    "SessionToken",
]
