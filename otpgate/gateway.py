"""
Messaging Gateway
=================
Sends OTP messages through a primary transport with bounded retries,
falling back to a secondary transport once the retries are exhausted.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import structlog

from otpgate.config import VerificationConfig
from otpgate.errors import ValidationError
from otpgate.logging_setup import mask_phone
from otpgate.messaging import DEFAULT_OTP_TEMPLATE, build_otp_message, validate_mobile
from otpgate.providers import (
    BaseProviderAdapter,
    ConsoleAdapter,
    HttpPanelAdapter,
    SendResult,
    TwilioAdapter,
)
from otpgate.retry import RetryExhausted, TransientSendError, retry_with_backoff

logger = structlog.get_logger(__name__)


class DispatchStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """Outcome of a gateway send: which provider delivered, or why none did."""
    status: DispatchStatus
    phone_number: str
    provider: Optional[str] = None
    message_id: Optional[str] = None
    primary_error: Optional[str] = None
    fallback_error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == DispatchStatus.SENT

    @property
    def provider_errors(self) -> Dict[str, Optional[str]]:
        return {"primary": self.primary_error, "fallback": self.fallback_error}


class MessagingGateway:
    """
    OTP dispatch with retry and provider fallback.

    Usage:
        gateway = MessagingGateway.from_config(config)
        await gateway.initialize()
        result = await gateway.send_otp("9812345678", "alice", "4821")
    """

    def __init__(
        self,
        primary: BaseProviderAdapter,
        fallback: Optional[BaseProviderAdapter] = None,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 15.0,
        validity_minutes: int = 5,
        app_name: str = "AR Experience",
        signature: str = "",
        valid_leading_digits: str = "6789",
        template: str = DEFAULT_OTP_TEMPLATE,
    ):
        self.primary = primary
        self.fallback = fallback
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self.validity_minutes = validity_minutes
        self.app_name = app_name
        self.signature = signature
        self.valid_leading_digits = valid_leading_digits
        self.template = template

    @classmethod
    def from_config(cls, config: VerificationConfig) -> "MessagingGateway":
        """Build the gateway and its transports from configuration."""
        primary = HttpPanelAdapter(
            config.panel,
            country_code=config.country_code,
            timeout=config.send_timeout_seconds,
        )

        fallback: Optional[BaseProviderAdapter] = None
        if config.fallback_provider == "twilio":
            fallback = TwilioAdapter(
                config.twilio,
                country_code=config.country_code,
                timeout=config.send_timeout_seconds,
            )
        elif config.fallback_provider == "console":
            fallback = ConsoleAdapter(environment=config.environment)

        return cls(
            primary=primary,
            fallback=fallback,
            retries=config.send_retries,
            backoff_seconds=config.retry_backoff_seconds,
            timeout_seconds=config.send_timeout_seconds,
            validity_minutes=config.otp_ttl_minutes,
            app_name=config.app_name,
            signature=config.message_signature,
            valid_leading_digits=config.valid_leading_digits,
        )

    async def initialize(self) -> None:
        await self.primary.initialize()
        if self.fallback:
            await self.fallback.initialize()

    async def close(self) -> None:
        await self.primary.close()
        if self.fallback:
            await self.fallback.close()

    def validate_phone(self, phone_number: str) -> str:
        """
        Validate a national mobile number.

        Returns:
            Digits-only phone number

        Raises:
            ValidationError: If the number is malformed
        """
        phone = validate_mobile(phone_number, self.valid_leading_digits)
        if phone is None:
            raise ValidationError([
                "Invalid phone number format. Must be a 10-digit mobile number."
            ])
        return phone

    def build_message(self, display_name: str, code: str) -> str:
        return build_otp_message(
            display_name,
            code,
            self.validity_minutes,
            app_name=self.app_name,
            signature=self.signature,
            template=self.template,
        )

    async def _send_once(self, adapter: BaseProviderAdapter, to: str, body: str) -> SendResult:
        """One attempt with a hard timeout; failures raise TransientSendError."""
        try:
            result = await asyncio.wait_for(
                adapter.send_sms(to, body),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransientSendError(
                f"{adapter.name} timed out after {self.timeout_seconds}s"
            ) from e

        if not result.success:
            raise TransientSendError(result.error_message or f"{adapter.name} send failed")
        return result

    async def _send_primary(self, to: str, body: str) -> SendResult:
        return await retry_with_backoff(
            self._send_once,
            self.primary,
            to,
            body,
            max_attempts=self.retries,
            base_delay=self.backoff_seconds,
            exponential_base=1.0,
            jitter=False,
            retryable_exceptions={TransientSendError},
        )

    async def send_otp(self, phone_number: str, display_name: str, code: str) -> DispatchResult:
        """
        Send an OTP message.

        Args:
            phone_number: Recipient (national form, formatting allowed)
            display_name: Name used in the greeting
            code: The OTP

        Returns:
            DispatchResult (SENT with provider and message id, or FAILED with
            both provider errors)

        Raises:
            ValidationError: If the phone number is malformed
        """
        phone = self.validate_phone(phone_number)
        body = self.build_message(display_name, code)
        log = logger.bind(phone=mask_phone(phone))

        try:
            result = await self._send_primary(phone, body)
            log.info("OTP SMS sent", provider=self.primary.name)
            return DispatchResult(
                status=DispatchStatus.SENT,
                phone_number=phone,
                provider=self.primary.name,
                message_id=result.provider_message_id,
            )
        except RetryExhausted as e:
            primary_error = str(e.last_exception or e)
        except Exception as e:
            log.error("Primary SMS provider raised", error=str(e), exc_info=True)
            primary_error = str(e) or e.__class__.__name__

        if self.fallback is None:
            log.error("All SMS providers failed", primary_error=primary_error)
            return DispatchResult(
                status=DispatchStatus.FAILED,
                phone_number=phone,
                primary_error=primary_error,
                fallback_error="No fallback provider configured",
            )

        log.warning("Primary provider failed, trying fallback", primary_error=primary_error)
        try:
            result = await self._send_once(self.fallback, phone, body)
            log.info("OTP SMS sent", provider=self.fallback.name)
            return DispatchResult(
                status=DispatchStatus.SENT,
                phone_number=phone,
                provider=self.fallback.name,
                message_id=result.provider_message_id,
            )
        except TransientSendError as e:
            fallback_error = str(e)
        except Exception as e:
            log.error("Fallback SMS provider raised", error=str(e), exc_info=True)
            fallback_error = str(e) or e.__class__.__name__

        log.error(
            "All SMS providers failed",
            primary_error=primary_error,
            fallback_error=fallback_error,
        )
        return DispatchResult(
            status=DispatchStatus.FAILED,
            phone_number=phone,
            primary_error=primary_error,
            fallback_error=fallback_error,
        )

    async def health(self) -> Dict[str, bool]:
        checks = {self.primary.name: await self.primary.health_check()}
        if self.fallback:
            checks[self.fallback.name] = await self.fallback.health_check()
        return checks
