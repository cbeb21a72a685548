"""
Verification Configuration
==========================
Tunables for OTP issuance, rate limiting, SMS delivery and cleanup.

Everything here is injected into the components; production deployments
load it with VerificationConfig.from_env().
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    return float(raw) if raw not in (None, "") else default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PanelProviderConfig:
    """Credentials for the primary HTTP SMS panel."""
    base_url: str = ""
    username: str = ""
    api_key: str = ""
    sender: str = ""
    route: str = "OTP"
    template_id: str = ""
    user_agent: str = "otpgate/1.0"

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.username and self.api_key and self.sender)


@dataclass
class TwilioConfig:
    """Credentials for the Twilio fallback transport."""
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""
    messaging_service_sid: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.auth_token
            and (self.from_number or self.messaging_service_sid)
        )


@dataclass
class VerificationConfig:
    """Configuration for the verification core."""
    # OTP
    otp_length: int = 4
    otp_ttl_minutes: int = 5
    max_attempts: int = 3
    pending_ttl_minutes: int = 30
    used_otp_grace_seconds: float = 1.0

    # Rate limiting
    hourly_cap: int = 5
    daily_cap: int = 20

    # Delivery
    send_retries: int = 3
    retry_backoff_seconds: float = 2.0
    send_timeout_seconds: float = 15.0
    permissive_delivery: bool = False
    country_code: str = "91"
    valid_leading_digits: str = "6789"
    app_name: str = "AR Experience"
    message_signature: str = ""
    fallback_provider: str = "twilio"  # "twilio", "console" or "none"
    panel: PanelProviderConfig = field(default_factory=PanelProviderConfig)
    twilio: TwilioConfig = field(default_factory=TwilioConfig)

    # Cleanup
    sweep_interval_seconds: float = 3600.0
    sweep_on_start: bool = True

    # Sessions
    session_secret: str = ""
    session_ttl_seconds: int = 24 * 3600

    # Runtime
    environment: str = "production"
    service_name: str = "otpgate"
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "VerificationConfig":
        """Build a config from environment variables."""
        env = os.environ if env is None else env
        defaults = cls()

        panel = PanelProviderConfig(
            base_url=env.get("SMS_BASE_URL", ""),
            username=env.get("SMS_USERNAME", ""),
            api_key=env.get("SMS_APIKEY", ""),
            sender=env.get("SMS_SENDER", ""),
            route=env.get("SMS_ROUTE", "OTP"),
            template_id=env.get("SMS_TEMPLATEID", ""),
        )
        twilio = TwilioConfig(
            account_sid=env.get("TWILIO_ACCOUNT_SID", ""),
            auth_token=env.get("TWILIO_AUTH_TOKEN", ""),
            from_number=env.get("TWILIO_FROM_NUMBER", ""),
            messaging_service_sid=env.get("TWILIO_MESSAGING_SERVICE_SID") or None,
        )

        return cls(
            otp_length=_env_int(env, "OTP_LENGTH", defaults.otp_length),
            otp_ttl_minutes=_env_int(env, "OTP_TTL_MINUTES", defaults.otp_ttl_minutes),
            max_attempts=_env_int(env, "OTP_MAX_ATTEMPTS", defaults.max_attempts),
            pending_ttl_minutes=_env_int(env, "PENDING_TTL_MINUTES", defaults.pending_ttl_minutes),
            used_otp_grace_seconds=_env_float(
                env, "OTP_USED_GRACE_SECONDS", defaults.used_otp_grace_seconds
            ),
            hourly_cap=_env_int(env, "SMS_MAX_PER_HOUR", defaults.hourly_cap),
            daily_cap=_env_int(env, "SMS_MAX_PER_DAY", defaults.daily_cap),
            send_retries=_env_int(env, "SMS_RETRIES", defaults.send_retries),
            retry_backoff_seconds=_env_float(
                env, "SMS_RETRY_BACKOFF_SECONDS", defaults.retry_backoff_seconds
            ),
            send_timeout_seconds=_env_float(
                env, "SMS_TIMEOUT_SECONDS", defaults.send_timeout_seconds
            ),
            permissive_delivery=_env_bool(
                env, "SMS_PERMISSIVE_DELIVERY", defaults.permissive_delivery
            ),
            country_code=env.get("SMS_COUNTRY_CODE", defaults.country_code),
            valid_leading_digits=env.get("SMS_VALID_LEADING_DIGITS", defaults.valid_leading_digits),
            app_name=env.get("APP_NAME", defaults.app_name),
            message_signature=env.get("SMS_SIGNATURE", panel.sender),
            fallback_provider=env.get("SMS_FALLBACK_PROVIDER", defaults.fallback_provider).lower(),
            panel=panel,
            twilio=twilio,
            sweep_interval_seconds=_env_float(
                env, "SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds
            ),
            sweep_on_start=_env_bool(env, "SWEEP_ON_START", defaults.sweep_on_start),
            session_secret=env.get("SESSION_SECRET", ""),
            session_ttl_seconds=_env_int(env, "SESSION_TTL_SECONDS", defaults.session_ttl_seconds),
            environment=env.get("APP_ENV", defaults.environment),
            service_name=env.get("SERVICE_NAME", defaults.service_name),
            database_url=env.get("DATABASE_URL") or None,
            redis_url=env.get("REDIS_URL") or None,
            log_level=env.get("LOG_LEVEL", defaults.log_level),
            log_json=_env_bool(env, "LOG_JSON", defaults.log_json),
        )

    def validate(self) -> List[str]:
        """
        Check for impossible or unsafe settings.

        Returns:
            List of problems (empty when the config is usable)
        """
        problems = []
        if not 4 <= self.otp_length <= 6:
            problems.append("otp_length must be between 4 and 6")
        if self.otp_ttl_minutes < 1:
            problems.append("otp_ttl_minutes must be at least 1")
        if self.max_attempts < 1:
            problems.append("max_attempts must be at least 1")
        if self.hourly_cap < 1 or self.daily_cap < 1:
            problems.append("SMS caps must be at least 1")
        if self.hourly_cap > self.daily_cap:
            problems.append("hourly_cap cannot exceed daily_cap")
        if self.send_retries < 1:
            problems.append("send_retries must be at least 1")
        if self.fallback_provider not in ("twilio", "console", "none"):
            problems.append(f"unknown fallback_provider: {self.fallback_provider}")
        if self.is_production:
            if not self.session_secret:
                problems.append("SESSION_SECRET is required in production")
            if self.permissive_delivery:
                problems.append("permissive delivery is not allowed in production")
            if self.fallback_provider == "console":
                problems.append("console fallback is not allowed in production")
        return problems
