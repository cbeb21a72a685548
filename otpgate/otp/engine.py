"""
OTP Engine
==========
Issues OTPs and runs the per-number verification state machine:

    NONE -> ISSUED -> {CONSUMED | EXPIRED | ATTEMPTS_EXHAUSTED}

Terminal states are not retained; they collapse back to NONE once the
record is deleted.
"""

from datetime import timedelta
from typing import Optional

import structlog

from otpgate.clock import Clock, SystemClock
from otpgate.config import VerificationConfig
from otpgate.errors import NotFoundError
from otpgate.logging_setup import mask_phone
from otpgate.models import OTP_KIND, OtpRecord
from otpgate.store import RecordStore

from .generator import codes_match, generate_otp
from .models import VerifyOutcome, VerifyResult

logger = structlog.get_logger(__name__)


class OtpEngine:
    """
    OTP issuance and verification on top of a record store.

    A successful verification marks the record used and pulls its expiry
    in to used_at + used_grace_seconds. Duplicate submissions inside that
    window see ALREADY_USED; afterwards the sweeper (or the next verify)
    removes the record.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Clock] = None,
        length: int = 4,
        ttl_minutes: int = 5,
        max_attempts: int = 3,
        used_grace_seconds: float = 1.0,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.length = length
        self.ttl_minutes = ttl_minutes
        self.max_attempts = max_attempts
        self.used_grace_seconds = used_grace_seconds

    @classmethod
    def from_config(
        cls,
        store: RecordStore,
        config: VerificationConfig,
        clock: Optional[Clock] = None,
    ) -> "OtpEngine":
        return cls(
            store,
            clock=clock,
            length=config.otp_length,
            ttl_minutes=config.otp_ttl_minutes,
            max_attempts=config.max_attempts,
            used_grace_seconds=config.used_otp_grace_seconds,
        )

    async def issue(
        self,
        phone_number: str,
        length: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
    ) -> str:
        """
        Generate and store a new OTP, replacing any previous one.

        Args:
            phone_number: Normalized phone number
            length: Digits (4 to 6); defaults to the engine's length
            ttl_minutes: Validity; defaults to the engine's TTL

        Returns:
            The plain code, for dispatch
        """
        code = generate_otp(length or self.length)
        ttl = ttl_minutes or self.ttl_minutes

        await self.store.put(
            OTP_KIND,
            phone_number,
            {
                "phone_number": phone_number,
                "code": code,
                "attempts": 0,
                "max_attempts": self.max_attempts,
                "is_used": False,
                "used_at": None,
            },
            ttl=timedelta(minutes=ttl),
        )

        logger.info("OTP issued", phone=mask_phone(phone_number), length=len(code), ttl_minutes=ttl)
        return code

    async def get(self, phone_number: str) -> Optional[OtpRecord]:
        doc = await self.store.get(OTP_KIND, phone_number)
        return OtpRecord.from_dict(doc) if doc is not None else None

    async def invalidate(self, phone_number: str) -> bool:
        """Drop the current OTP for a number, if any."""
        return await self.store.delete(OTP_KIND, phone_number)

    async def verify(self, phone_number: str, submitted_code: str) -> VerifyResult:
        """
        Check a submitted code.

        Order: not found, already used, expired, attempts exhausted, then
        comparison. An expired record is reported as EXPIRED even when its
        attempts are also exhausted, and an exhausted record is never
        compared against the input.
        """
        log = logger.bind(phone=mask_phone(phone_number))
        record = await self.get(phone_number)
        now = self.clock.now()

        if record is None:
            log.info("OTP not found")
            return VerifyResult(VerifyOutcome.NOT_FOUND)

        if record.is_used:
            if record.is_expired(now):
                await self.store.delete(OTP_KIND, phone_number)
            log.info("OTP already used")
            return VerifyResult(VerifyOutcome.ALREADY_USED)

        if record.is_expired(now):
            await self.store.delete(OTP_KIND, phone_number)
            log.info("OTP expired")
            return VerifyResult(VerifyOutcome.EXPIRED)

        if record.attempts >= record.max_attempts:
            await self.store.delete(OTP_KIND, phone_number)
            log.warning("OTP attempts exhausted", attempts=record.attempts)
            return VerifyResult(VerifyOutcome.ATTEMPTS_EXCEEDED, remaining_attempts=0)

        if not codes_match(submitted_code, record.code):
            attempts = record.attempts + 1
            try:
                await self.store.update(OTP_KIND, phone_number, {"attempts": attempts})
            except NotFoundError:
                # Deleted or replaced between read and write.
                return VerifyResult(VerifyOutcome.NOT_FOUND)
            remaining = max(record.max_attempts - attempts, 0)
            log.warning("Invalid OTP attempt", remaining=remaining)
            return VerifyResult(VerifyOutcome.INVALID_CODE, remaining_attempts=remaining)

        grace_deadline = now + timedelta(seconds=self.used_grace_seconds)
        try:
            await self.store.update(
                OTP_KIND,
                phone_number,
                {
                    "is_used": True,
                    "used_at": now,
                    "expires_at": min(record.expires_at, grace_deadline),
                },
            )
        except NotFoundError:
            return VerifyResult(VerifyOutcome.NOT_FOUND)

        log.info("OTP verified successfully")
        return VerifyResult(VerifyOutcome.OK)
