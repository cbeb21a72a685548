"""
Configuration Tests
===================
"""

from otpgate.config import VerificationConfig


class TestFromEnv:
    """Tests for VerificationConfig.from_env()."""

    def test_defaults(self):
        config = VerificationConfig.from_env({})

        assert config.otp_length == 4
        assert config.otp_ttl_minutes == 5
        assert config.max_attempts == 3
        assert config.pending_ttl_minutes == 30
        assert config.hourly_cap == 5
        assert config.daily_cap == 20
        assert config.send_retries == 3
        assert config.retry_backoff_seconds == 2.0
        assert config.send_timeout_seconds == 15.0
        assert config.sweep_interval_seconds == 3600.0
        assert config.environment == "production"
        assert config.is_production

    def test_overrides(self):
        config = VerificationConfig.from_env({
            "OTP_LENGTH": "6",
            "SMS_MAX_PER_HOUR": "3",
            "SMS_PERMISSIVE_DELIVERY": "true",
            "SWEEP_ON_START": "0",
            "APP_ENV": "development",
            "SMS_SENDER": "ARXPRN",
            "SMS_FALLBACK_PROVIDER": "Console",
            "TWILIO_ACCOUNT_SID": "AC1",
            "TWILIO_AUTH_TOKEN": "t",
            "TWILIO_MESSAGING_SERVICE_SID": "MG1",
            "DATABASE_URL": "sqlite+aiosqlite:///otp.db",
        })

        assert config.otp_length == 6
        assert config.hourly_cap == 3
        assert config.permissive_delivery is True
        assert config.sweep_on_start is False
        assert config.is_production is False
        assert config.panel.sender == "ARXPRN"
        assert config.message_signature == "ARXPRN"
        assert config.fallback_provider == "console"
        assert config.twilio.is_configured
        assert config.database_url == "sqlite+aiosqlite:///otp.db"
        assert config.redis_url is None

    def test_blank_values_use_defaults(self):
        config = VerificationConfig.from_env({"OTP_LENGTH": "", "DATABASE_URL": ""})

        assert config.otp_length == 4
        assert config.database_url is None


class TestValidate:
    """Tests for VerificationConfig.validate()."""

    def test_valid_development_config(self):
        assert VerificationConfig(environment="development").validate() == []

    def test_impossible_values(self):
        problems = VerificationConfig(
            environment="development",
            otp_length=8,
            hourly_cap=30,
            daily_cap=20,
            fallback_provider="pigeon",
        ).validate()

        assert "otp_length must be between 4 and 6" in problems
        assert "hourly_cap cannot exceed daily_cap" in problems
        assert "unknown fallback_provider: pigeon" in problems

    def test_production_requirements(self):
        problems = VerificationConfig(
            environment="production",
            permissive_delivery=True,
            fallback_provider="console",
        ).validate()

        assert len(problems) == 3

    def test_production_ok_with_secret(self):
        assert VerificationConfig(session_secret="s3cret").validate() == []
