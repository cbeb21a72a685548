"""
otpgate
=======
Phone-number verification core: OTP issuance by SMS, attempt-limited
verification, rate-limited dispatch with provider fallback, and cleanup
of stale state.
"""

__version__ = "0.1.0"

# Clock
from otpgate.clock import Clock, SystemClock, ManualClock

# Configuration
from otpgate.config import VerificationConfig, PanelProviderConfig, TwilioConfig

# Errors
from otpgate.errors import (
    ErrorKind,
    OTPGateError,
    ValidationError,
    NotFoundError,
    StoreFailure,
    RateLimited,
    TransportFailure,
)

# Record Store
from otpgate.store import RecordStore, InMemoryRecordStore, SqlRecordStore

# Rate Limiting
from otpgate.rate_limit import (
    SlidingWindowRateLimiter,
    RedisSlidingWindowLimiter,
    RateLimitInfo,
)

# Messaging
from otpgate.gateway import MessagingGateway, DispatchResult, DispatchStatus

# OTP
from otpgate.otp import OtpEngine, SessionToken, VerifyOutcome, VerifyResult

# Cleanup
from otpgate.cleanup import CleanupSweeper, SweepReport

# Service
from otpgate.service import (
    VerificationService,
    RegistrationResult,
    VerificationResult,
    ResendResult,
    VerificationStats,
)

__all__ = [
    "__version__",
    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",
    # Configuration
    "VerificationConfig",
    "PanelProviderConfig",
    "TwilioConfig",
    # Errors
    "ErrorKind",
    "OTPGateError",
    "ValidationError",
    "NotFoundError",
    "StoreFailure",
    "RateLimited",
    "TransportFailure",
    # Record Store
    "RecordStore",
    "InMemoryRecordStore",
    "SqlRecordStore",
    # Rate Limiting
    "SlidingWindowRateLimiter",
    "RedisSlidingWindowLimiter",
    "RateLimitInfo",
    # Messaging
    "MessagingGateway",
    "DispatchResult",
    "DispatchStatus",
    # OTP
    "OtpEngine",
    "SessionToken",
    "VerifyOutcome",
    "VerifyResult",
    # Cleanup
    "CleanupSweeper",
    "SweepReport",
    # Service
    "VerificationService",
    "RegistrationResult",
    "VerificationResult",
    "ResendResult",
    "VerificationStats",
]
