"""
Verification Service Tests
==========================
End-to-end register / verify / resend flows on the in-memory store.
"""

import pytest

from conftest import PHONE, FakeAdapter
from otpgate.errors import ErrorKind, StoreFailure
from otpgate.gateway import MessagingGateway
from otpgate.models import LOG_KIND, OTP_KIND, PENDING_KIND, USER_KIND
from otpgate.otp import SessionToken
from otpgate.service import VerificationService


def make_service(config, store, limiter, clock, primary, fallback=None):
    gateway = MessagingGateway(primary, fallback=fallback, retries=1, backoff_seconds=0.0)
    return VerificationService(
        config,
        store,
        limiter,
        gateway,
        session_tokens=SessionToken("test-secret", clock),
        clock=clock,
    )


class TestRegister:
    """Tests for register()."""

    @pytest.mark.asyncio
    async def test_register_issues_and_sends(self, service, store, engine, primary, clock):
        result = await service.register("alice", PHONE, "Pune")

        assert result.ok
        assert result.error is None
        assert result.is_new_user is True
        assert result.provider == "primary"

        otp = await engine.get(PHONE)
        assert len(otp.code) == 4
        assert (otp.expires_at - clock.now()).total_seconds() == 300
        assert result.debug_code == otp.code
        assert otp.code in primary.sent[0]["body"]

        pending = await store.get(PENDING_KIND, PHONE)
        assert pending["username"] == "alice"
        assert pending["city"] == "Pune"
        assert pending["is_new_user"] is True
        assert (pending["expires_at"] - clock.now()).total_seconds() == 30 * 60

    @pytest.mark.asyncio
    async def test_validation_errors(self, service, store, primary):
        result = await service.register("al", "12345", "P")

        assert result.ok is False
        assert result.error == ErrorKind.VALIDATION
        assert len(result.errors) == 3
        assert primary.sent == []
        assert await store.count_where(OTP_KIND) == 0

    @pytest.mark.asyncio
    async def test_sixth_registration_in_an_hour_is_rate_limited(self, service, clock):
        for _ in range(5):
            assert (await service.register("alice", PHONE, "Pune")).ok
            clock.advance(minutes=1)

        result = await service.register("alice", PHONE, "Pune")

        assert result.error == ErrorKind.RATE_LIMITED
        assert result.retry_after > 0

    @pytest.mark.asyncio
    async def test_existing_user_is_not_new(self, service, store):
        await store.put(USER_KIND, f"phone_{PHONE}", {"uid": f"phone_{PHONE}"})

        result = await service.register("alice", PHONE, "Pune")

        assert result.is_new_user is False

    @pytest.mark.asyncio
    async def test_transport_failure_invalidates_otp(self, config, store, limiter, clock):
        service = make_service(
            config, store, limiter, clock,
            FakeAdapter("primary", outcomes=[False]),
            FakeAdapter("fallback", outcomes=[False]),
        )

        result = await service.register("alice", PHONE, "Pune")

        assert result.error == ErrorKind.TRANSPORT_FAILURE
        assert await store.get(OTP_KIND, PHONE) is None
        assert await store.get(PENDING_KIND, PHONE) is None

    @pytest.mark.asyncio
    async def test_permissive_delivery_keeps_otp(self, config, store, limiter, clock):
        config.permissive_delivery = True
        service = make_service(
            config, store, limiter, clock, FakeAdapter("primary", outcomes=[False])
        )

        result = await service.register("alice", PHONE, "Pune")

        assert result.ok
        assert await store.get(OTP_KIND, PHONE) is not None

    @pytest.mark.asyncio
    async def test_no_debug_code_in_production(self, service):
        service.config.environment = "production"

        result = await service.register("alice", PHONE, "Pune")

        assert result.ok
        assert result.debug_code is None

    @pytest.mark.asyncio
    async def test_store_failure_is_internal(self, service, store, monkeypatch):
        async def broken_put(*args, **kwargs):
            raise StoreFailure("disk full")

        monkeypatch.setattr(store, "put", broken_put)

        result = await service.register("alice", PHONE, "Pune")

        assert result.error == ErrorKind.INTERNAL
        assert "disk full" not in result.message

    @pytest.mark.asyncio
    async def test_events_logged(self, service, store):
        await service.register("alice", PHONE, "Pune")

        types = set()
        await store.count_where(LOG_KIND, lambda d: types.add(d["event_type"]) or True)

        assert {"otp.issued", "otp.sent", "registration.submitted"} <= types


class TestVerifyOtp:
    """Tests for verify_otp()."""

    @pytest.mark.asyncio
    async def test_full_flow_creates_verified_user(self, service, store, engine, clock):
        registered = await service.register("alice", PHONE, "Pune")

        result = await service.verify_otp(PHONE, registered.debug_code)

        assert result.ok
        assert result.uid == f"phone_{PHONE}"
        assert result.is_new_user is True
        assert service.session_tokens.verify(result.session_token)["uid"] == result.uid

        user = await service.get_user(result.uid)
        assert user.username == "alice"
        assert user.city == "Pune"
        assert user.is_verified is True
        assert user.status == "active"
        assert user.last_login_at == clock.now()
        assert await store.get(PENDING_KIND, PHONE) is None

    @pytest.mark.asyncio
    async def test_second_verify_fails(self, service):
        registered = await service.register("alice", PHONE, "Pune")
        await service.verify_otp(PHONE, registered.debug_code)

        again = await service.verify_otp(PHONE, registered.debug_code)

        assert again.ok is False
        assert again.error in (ErrorKind.ALREADY_USED, ErrorKind.NOT_FOUND)

    @pytest.mark.asyncio
    async def test_returning_user_updates_login(self, service, clock):
        first = await service.register("alice", PHONE, "Pune")
        await service.verify_otp(PHONE, first.debug_code)
        clock.advance(hours=1)

        second = await service.register("alice", PHONE, "Pune")
        result = await service.verify_otp(PHONE, second.debug_code)

        assert second.is_new_user is False
        assert result.ok
        assert result.is_new_user is False
        user = await service.get_user(result.uid)
        assert user.last_login_at == clock.now()
        assert user.updated_at == clock.now()

    @pytest.mark.asyncio
    async def test_returning_user_profile_takes_new_details(self, service, clock):
        first = await service.register("alice", PHONE, "Pune")
        await service.verify_otp(PHONE, first.debug_code)
        clock.advance(hours=1)

        second = await service.register("alicia", PHONE, "Mumbai")
        result = await service.verify_otp(PHONE, second.debug_code)

        assert result.ok
        user = await service.get_user(result.uid)
        assert (user.username, user.city) == ("alicia", "Mumbai")
        assert user.is_verified is True

    @pytest.mark.asyncio
    async def test_wrong_code_reports_remaining(self, service):
        registered = await service.register("alice", PHONE, "Pune")
        wrong = "0000" if registered.debug_code != "0000" else "1111"

        result = await service.verify_otp(PHONE, wrong)

        assert result.error == ErrorKind.INVALID_CODE
        assert result.remaining_attempts == 2
        assert "2 attempts remaining" in result.message

    @pytest.mark.asyncio
    async def test_no_registration_is_not_found(self, service):
        result = await service.verify_otp(PHONE, "1234")

        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_expired_pending_registration(self, service, store, clock):
        registered = await service.register("alice", PHONE, "Pune")
        clock.advance(minutes=31)

        result = await service.verify_otp(PHONE, registered.debug_code)

        assert result.error == ErrorKind.NOT_FOUND
        assert await store.get(PENDING_KIND, PHONE) is None

    @pytest.mark.asyncio
    async def test_expired_otp(self, service, clock):
        registered = await service.register("alice", PHONE, "Pune")
        clock.advance(minutes=6)

        result = await service.verify_otp(PHONE, registered.debug_code)

        assert result.error == ErrorKind.EXPIRED

    @pytest.mark.asyncio
    async def test_malformed_input(self, service):
        result = await service.verify_otp("abc", "12a4")

        assert result.error == ErrorKind.VALIDATION
        assert len(result.errors) == 2


class TestResendOtp:
    """Tests for resend_otp()."""

    @pytest.mark.asyncio
    async def test_resend_replaces_code(self, service, engine, primary):
        registered = await service.register("alice", PHONE, "Pune")
        await service.verify_otp(PHONE, "0000" if registered.debug_code != "0000" else "1111")

        result = await service.resend_otp(PHONE)
        otp = await engine.get(PHONE)

        assert result.ok
        assert result.debug_code == otp.code
        assert otp.attempts == 0
        assert len(primary.sent) == 2
        assert "alice" in primary.sent[1]["body"]

    @pytest.mark.asyncio
    async def test_resend_without_registration(self, service):
        result = await service.resend_otp(PHONE)

        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_resend_is_rate_limited(self, service):
        await service.register("alice", PHONE, "Pune")
        for _ in range(4):
            assert (await service.resend_otp(PHONE)).ok

        result = await service.resend_otp(PHONE)

        assert result.error == ErrorKind.RATE_LIMITED
        assert result.retry_after == 3600


class TestStats:
    """Tests for get_stats()."""

    @pytest.mark.asyncio
    async def test_stats(self, service):
        alice = await service.register("alice", PHONE, "Pune")
        await service.verify_otp(PHONE, alice.debug_code)
        await service.register("bob", "9876543210", "Goa")

        stats = await service.get_stats()

        assert stats.to_dict() == {
            "total_users": 1,
            "verified_users": 1,
            "pending_otps": 1,
            "pending_users": 1,
        }
