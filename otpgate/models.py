"""
Record Models
=============
Typed views over the documents kept in the record store.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional

# Record store kinds
OTP_KIND = "otps"
PENDING_KIND = "pending_users"
USER_KIND = "users"
LOG_KIND = "logs"


def user_uid(phone_number: str) -> str:
    """Deterministic user id for a phone number."""
    return f"phone_{phone_number}"


class _Record:
    """Round-trips a dataclass through the plain dicts the store keeps."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class OtpRecord(_Record):
    """One active OTP per phone number."""
    phone_number: str
    code: str
    expires_at: datetime
    created_at: datetime
    attempts: int = 0
    max_attempts: int = 3
    is_used: bool = False
    used_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def remaining_attempts(self) -> int:
        return max(self.max_attempts - self.attempts, 0)


@dataclass
class PendingRegistration(_Record):
    """Registration data held between form submission and OTP success."""
    phone_number: str
    username: str
    city: str
    is_new_user: bool
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class UserRecord(_Record):
    """A phone-verified user."""
    uid: str
    username: str
    phone_number: str
    city: str
    created_at: datetime
    updated_at: datetime
    is_verified: bool = False
    status: str = "active"
    last_login_at: Optional[datetime] = None
