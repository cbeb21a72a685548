"""
Event Types
===========
Diagnostic event types written by the verification flow.
"""

from enum import Enum


class EventType(str, Enum):
    """Verification event types."""
    # Registration
    REGISTRATION_SUBMITTED = "registration.submitted"
    REGISTRATION_REJECTED = "registration.rejected"

    # OTP
    OTP_ISSUED = "otp.issued"
    OTP_SENT = "otp.sent"
    OTP_SEND_FAILED = "otp.send_failed"
    OTP_RESENT = "otp.resent"
    OTP_VERIFIED = "otp.verified"
    OTP_VERIFY_FAILED = "otp.verify_failed"

    # Users
    USER_CREATED = "user.created"
    USER_LOGIN = "user.login"

    # Security
    RATE_LIMIT_HIT = "security.rate_limit"

    # Maintenance
    SWEEP_COMPLETED = "maintenance.sweep"
