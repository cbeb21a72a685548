"""
Errors
======
Exception taxonomy and result kinds for the verification core.

Exceptions are raised at component seams (store, gateway, validation);
the service layer turns them into ErrorKind values callers can match on.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Caller-visible failure kinds."""
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    INVALID_CODE = "invalid_code"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_FAILURE = "transport_failure"
    INTERNAL = "internal_error"


# Friendly text for each kind. Internal detail never goes to the user.
USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Please check the details you entered.",
    ErrorKind.NOT_FOUND: "No active code found. Please register again.",
    ErrorKind.EXPIRED: "The code has expired. Please request a new one.",
    ErrorKind.ALREADY_USED: "This code has already been used.",
    ErrorKind.ATTEMPTS_EXCEEDED: "Too many wrong attempts. Please request a new code.",
    ErrorKind.INVALID_CODE: "Invalid code. Please try again.",
    ErrorKind.RATE_LIMITED: "Too many SMS requests. Please wait before trying again.",
    ErrorKind.TRANSPORT_FAILURE: "Failed to send the code. Please try again later.",
    ErrorKind.INTERNAL: "Something went wrong. Please try again.",
}


class OTPGateError(Exception):
    """Base exception for the verification core."""
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(OTPGateError):
    """Malformed username, phone number or city."""
    kind = ErrorKind.VALIDATION

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(", ".join(errors), details=errors)


class NotFoundError(OTPGateError):
    """A record the operation needs does not exist."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, kind_name: str, key: str):
        self.record_kind = kind_name
        self.key = key
        super().__init__(f"{kind_name} record not found: {key}")


class StoreFailure(OTPGateError):
    """The persistence layer failed."""
    kind = ErrorKind.INTERNAL


class RateLimited(OTPGateError):
    """SMS dispatch ceiling reached for a phone number."""
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message, details={"retry_after": retry_after})


class TransportFailure(OTPGateError):
    """Every SMS transport failed."""
    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, provider_errors: Dict[str, Optional[str]]):
        self.provider_errors = provider_errors
        super().__init__("SMS delivery failed", details=provider_errors)
