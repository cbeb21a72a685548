"""
OTP Models
==========
Verification outcomes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from otpgate.errors import ErrorKind


class VerifyOutcome(str, Enum):
    """Result of checking a submitted code."""
    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    INVALID_CODE = "invalid_code"

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if self is VerifyOutcome.OK:
            return None
        return ErrorKind(self.value)


@dataclass
class VerifyResult:
    """Outcome of OtpEngine.verify."""
    outcome: VerifyOutcome
    remaining_attempts: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome == VerifyOutcome.OK
