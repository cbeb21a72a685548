"""
Verification Service
====================
Registration, OTP verification and resend flows on top of the record
store, rate limiter, OTP engine and messaging gateway.

Every operation returns a result dataclass tagged with an ErrorKind
instead of raising; callers match on ``result.error``.

Usage:
    service = VerificationService(config, store, limiter, gateway)
    result = await service.register("alice", "9812345678", "Pune")
    if result.ok:
        verified = await service.verify_otp("9812345678", code)
"""

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

import structlog

from otpgate.audit import EventLog, EventType
from otpgate.clock import Clock, SystemClock
from otpgate.config import VerificationConfig
from otpgate.errors import (
    USER_MESSAGES,
    ErrorKind,
    OTPGateError,
    RateLimited,
    TransportFailure,
)
from otpgate.gateway import MessagingGateway
from otpgate.logging_setup import mask_phone
from otpgate.messaging import validate_mobile
from otpgate.models import (
    OTP_KIND,
    PENDING_KIND,
    USER_KIND,
    PendingRegistration,
    UserRecord,
    user_uid,
)
from otpgate.otp import OtpEngine, SessionToken, VerifyOutcome
from otpgate.store import RecordStore

logger = structlog.get_logger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
CITY_MIN_LENGTH = 2


@dataclass
class RegistrationResult:
    ok: bool
    message: str
    error: Optional[ErrorKind] = None
    errors: List[str] = field(default_factory=list)
    phone_number: Optional[str] = None
    is_new_user: bool = False
    provider: Optional[str] = None
    retry_after: Optional[int] = None
    debug_code: Optional[str] = None


@dataclass
class VerificationResult:
    ok: bool
    message: str
    error: Optional[ErrorKind] = None
    errors: List[str] = field(default_factory=list)
    uid: Optional[str] = None
    session_token: Optional[str] = None
    is_new_user: bool = False
    remaining_attempts: Optional[int] = None


@dataclass
class ResendResult:
    ok: bool
    message: str
    error: Optional[ErrorKind] = None
    errors: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    retry_after: Optional[int] = None
    debug_code: Optional[str] = None


@dataclass
class VerificationStats:
    total_users: int
    verified_users: int
    pending_otps: int
    pending_users: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _failure(result_cls, kind: ErrorKind, message: Optional[str] = None, **kwargs):
    return result_cls(ok=False, error=kind, message=message or USER_MESSAGES[kind], **kwargs)


class VerificationService:
    """
    Phone-number verification flows.

    State lives in the record store; the service itself holds only its
    collaborators and can be shared across concurrent requests.
    """

    def __init__(
        self,
        config: VerificationConfig,
        store: RecordStore,
        rate_limiter,
        gateway: MessagingGateway,
        engine: Optional[OtpEngine] = None,
        event_log: Optional[EventLog] = None,
        session_tokens: Optional[SessionToken] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            config: Verification settings
            store: Record store for OTPs, pending registrations and users
            rate_limiter: SlidingWindowRateLimiter or RedisSlidingWindowLimiter
            gateway: SMS dispatch
            engine: OTP engine; built from config and store when omitted
            event_log: Diagnostic event log; built on the store when omitted
            session_tokens: Token issuer; no token is returned when omitted
            clock: Time source; defaults to the store's clock
        """
        self.config = config
        self.store = store
        self.rate_limiter = rate_limiter
        self.gateway = gateway
        self.clock = clock or store.clock or SystemClock()
        self.engine = engine or OtpEngine.from_config(store, config, self.clock)
        self.event_log = event_log or EventLog(store)
        self.session_tokens = session_tokens

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _debug_code(self, code: str) -> Optional[str]:
        return None if self.config.is_production else code

    def _validate_phone(self, phone_number: str) -> Optional[str]:
        return validate_mobile(phone_number or "", self.config.valid_leading_digits)

    def _validate_registration(self, username: str, phone: Optional[str], city: str) -> List[str]:
        errors = []
        if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
            errors.append(
                f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters long"
            )
        if phone is None:
            errors.append("Invalid phone number format. Must be a 10-digit mobile number.")
        if len(city) < CITY_MIN_LENGTH:
            errors.append("Please select or enter a valid city")
        return errors

    async def _get_pending(self, phone: str) -> Optional[PendingRegistration]:
        """Read a pending registration; an expired one is deleted and treated as absent."""
        doc = await self.store.get(PENDING_KIND, phone)
        if doc is None:
            return None
        pending = PendingRegistration.from_dict(doc)
        if pending.is_expired(self.clock.now()):
            await self.store.delete(PENDING_KIND, phone)
            return None
        return pending

    async def _dispatch(self, phone: str, display_name: str, ip: Optional[str], user_agent: Optional[str]):
        """
        Issue a fresh OTP and send it.

        Returns:
            (code, DispatchResult)

        Raises:
            TransportFailure: If every transport failed and permissive
                delivery is off; the OTP is invalidated first
        """
        code = await self.engine.issue(phone)
        await self.event_log.record(
            EventType.OTP_ISSUED, {"phone": mask_phone(phone)}, ip=ip, user_agent=user_agent
        )

        dispatch = await self.gateway.send_otp(phone, display_name, code)
        if dispatch.sent:
            await self.event_log.record(
                EventType.OTP_SENT,
                {"phone": mask_phone(phone), "provider": dispatch.provider},
                ip=ip,
                user_agent=user_agent,
            )
            return code, dispatch

        await self.event_log.record(
            EventType.OTP_SEND_FAILED,
            {"phone": mask_phone(phone), "errors": dispatch.provider_errors},
            ip=ip,
            user_agent=user_agent,
        )
        if self.config.permissive_delivery:
            logger.warning(
                "SMS delivery failed, continuing in permissive mode",
                phone=mask_phone(phone),
            )
            return code, dispatch

        await self.engine.invalidate(phone)
        raise TransportFailure(dispatch.provider_errors)

    async def _rate_limit(self, phone: str, ip: Optional[str], user_agent: Optional[str]) -> None:
        """
        Record a dispatch against the number's SMS ceilings.

        Raises:
            RateLimited: If a ceiling is reached
        """
        info = await self.rate_limiter.check_and_record(phone)
        if not info.allowed:
            await self.event_log.record(
                EventType.RATE_LIMIT_HIT,
                {
                    "phone": mask_phone(phone),
                    "reason": info.reason.value if info.reason else None,
                    "retry_after": info.retry_after,
                },
                ip=ip,
                user_agent=user_agent,
            )
            raise RateLimited(info.message, info.retry_after)

    def _error_result(self, result_cls, error: Exception, operation: str, phone: Optional[str]):
        kind = error.kind if isinstance(error, OTPGateError) else ErrorKind.INTERNAL
        logger.error(
            "Verification operation failed",
            operation=operation,
            phone=mask_phone(phone),
            error=str(error),
            error_type=error.__class__.__name__,
            exc_info=True,
        )
        return _failure(result_cls, kind)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register(
        self,
        username: str,
        phone_number: str,
        city: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RegistrationResult:
        """
        Start a registration: validate, rate limit, issue and send an OTP.

        Args:
            username: Display name (3-20 characters)
            phone_number: 10-digit national mobile number
            city: City name (at least 2 characters)
            ip: Client IP for the event log
            user_agent: Client user agent for the event log

        Returns:
            RegistrationResult
        """
        username = (username or "").strip()
        city = (city or "").strip()
        phone = self._validate_phone(phone_number)

        errors = self._validate_registration(username, phone, city)
        if errors:
            await self.event_log.record(
                EventType.REGISTRATION_REJECTED, {"errors": errors}, ip=ip, user_agent=user_agent
            )
            return _failure(RegistrationResult, ErrorKind.VALIDATION, errors[0], errors=errors)

        try:
            await self._rate_limit(phone, ip, user_agent)

            is_new_user = await self.store.get(USER_KIND, user_uid(phone)) is None

            code, dispatch = await self._dispatch(phone, username, ip, user_agent)

            await self.store.put(
                PENDING_KIND,
                phone,
                {
                    "phone_number": phone,
                    "username": username,
                    "city": city,
                    "is_new_user": is_new_user,
                },
                ttl=timedelta(minutes=self.config.pending_ttl_minutes),
            )
        except RateLimited as e:
            return _failure(
                RegistrationResult,
                ErrorKind.RATE_LIMITED,
                e.message,
                phone_number=phone,
                retry_after=e.retry_after,
            )
        except TransportFailure:
            return _failure(RegistrationResult, ErrorKind.TRANSPORT_FAILURE, phone_number=phone)
        except Exception as e:
            return self._error_result(RegistrationResult, e, "register", phone)

        await self.event_log.record(
            EventType.REGISTRATION_SUBMITTED,
            {"phone": mask_phone(phone), "is_new_user": is_new_user, "city": city},
            ip=ip,
            user_agent=user_agent,
        )
        logger.info("Registration submitted", phone=mask_phone(phone), is_new_user=is_new_user)

        return RegistrationResult(
            ok=True,
            message="OTP sent successfully to your phone number",
            phone_number=phone,
            is_new_user=is_new_user,
            provider=dispatch.provider,
            debug_code=self._debug_code(code),
        )

    async def verify_otp(
        self,
        phone_number: str,
        code: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify a submitted code and materialise the user.

        On success the UserRecord is created (or marked verified with a
        fresh last_login_at), the pending registration is removed and a
        session token for the uid is returned.
        """
        phone = self._validate_phone(phone_number)
        code = (code or "").strip()
        errors = []
        if phone is None:
            errors.append("Invalid phone number format. Must be a 10-digit mobile number.")
        if not code.isdigit():
            errors.append("Please enter the numeric code sent to your phone")
        if errors:
            return _failure(VerificationResult, ErrorKind.VALIDATION, errors[0], errors=errors)

        uid = user_uid(phone)
        try:
            pending = await self._get_pending(phone)
            user_doc = await self.store.get(USER_KIND, uid)
            if pending is None and user_doc is None:
                return _failure(
                    VerificationResult,
                    ErrorKind.NOT_FOUND,
                    "Registration session expired. Please register again.",
                )

            verdict = await self.engine.verify(phone, code)
            if not verdict.ok:
                await self.event_log.record(
                    EventType.OTP_VERIFY_FAILED,
                    {"phone": mask_phone(phone), "outcome": verdict.outcome.value},
                    ip=ip,
                    user_agent=user_agent,
                )
                message = None
                if verdict.outcome == VerifyOutcome.INVALID_CODE:
                    message = (
                        f"Invalid code. {verdict.remaining_attempts} attempts remaining."
                    )
                return _failure(
                    VerificationResult,
                    verdict.outcome.error_kind,
                    message,
                    remaining_attempts=verdict.remaining_attempts,
                )

            now = self.clock.now()
            is_new_user = user_doc is None
            if is_new_user:
                await self.store.put(
                    USER_KIND,
                    uid,
                    {
                        "uid": uid,
                        "username": pending.username,
                        "phone_number": phone,
                        "city": pending.city,
                        "is_verified": True,
                        "status": "active",
                        "last_login_at": now,
                    },
                )
                event_type = EventType.USER_CREATED
            else:
                changes = {"is_verified": True, "last_login_at": now}
                if pending is not None:
                    # Latest registration details win.
                    changes.update(username=pending.username, city=pending.city)
                await self.store.update(USER_KIND, uid, changes)
                event_type = EventType.USER_LOGIN

            if pending is not None:
                await self.store.delete(PENDING_KIND, phone)
        except Exception as e:
            return self._error_result(VerificationResult, e, "verify_otp", phone)

        await self.event_log.record(
            EventType.OTP_VERIFIED, {"phone": mask_phone(phone)}, ip=ip, user_agent=user_agent
        )
        await self.event_log.record(event_type, {"uid": uid}, ip=ip, user_agent=user_agent)
        logger.info("Phone number verified", phone=mask_phone(phone), is_new_user=is_new_user)

        return VerificationResult(
            ok=True,
            message="Phone number verified successfully",
            uid=uid,
            session_token=self.session_tokens.issue(uid) if self.session_tokens else None,
            is_new_user=is_new_user,
        )

    async def resend_otp(
        self,
        phone_number: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ResendResult:
        """Issue and send a fresh OTP for a live pending registration."""
        phone = self._validate_phone(phone_number)
        if phone is None:
            message = "Invalid phone number format. Must be a 10-digit mobile number."
            return _failure(ResendResult, ErrorKind.VALIDATION, message, errors=[message])

        try:
            pending = await self._get_pending(phone)
            if pending is None:
                return _failure(
                    ResendResult,
                    ErrorKind.NOT_FOUND,
                    "Registration session expired. Please register again.",
                )

            await self._rate_limit(phone, ip, user_agent)
            code, dispatch = await self._dispatch(phone, pending.username, ip, user_agent)
        except RateLimited as e:
            return _failure(
                ResendResult, ErrorKind.RATE_LIMITED, e.message, retry_after=e.retry_after
            )
        except TransportFailure:
            return _failure(ResendResult, ErrorKind.TRANSPORT_FAILURE)
        except Exception as e:
            return self._error_result(ResendResult, e, "resend_otp", phone)

        await self.event_log.record(
            EventType.OTP_RESENT, {"phone": mask_phone(phone)}, ip=ip, user_agent=user_agent
        )

        return ResendResult(
            ok=True,
            message="New OTP sent successfully",
            provider=dispatch.provider,
            debug_code=self._debug_code(code),
        )

    async def get_stats(self) -> VerificationStats:
        """
        Counts of users and in-flight verifications.

        Raises:
            StoreFailure: If the store cannot be read
        """
        now = self.clock.now()

        def live(doc: Dict[str, Any]) -> bool:
            return doc.get("expires_at") is not None and doc["expires_at"] >= now

        return VerificationStats(
            total_users=await self.store.count_where(USER_KIND),
            verified_users=await self.store.count_where(
                USER_KIND, lambda doc: bool(doc.get("is_verified"))
            ),
            pending_otps=await self.store.count_where(
                OTP_KIND, lambda doc: live(doc) and not doc.get("is_used")
            ),
            pending_users=await self.store.count_where(PENDING_KIND, live),
        )

    async def get_user(self, uid: str) -> Optional[UserRecord]:
        """Read a user by uid; None when absent."""
        doc = await self.store.get(USER_KIND, uid)
        return UserRecord.from_dict(doc) if doc is not None else None
