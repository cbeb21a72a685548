"""
Session Token
=============
Signed credential handed to a user after successful verification.
"""

import base64
import hashlib
import hmac
import json
from typing import Optional

from otpgate.clock import Clock, SystemClock


class SessionToken:
    """Issues and verifies HMAC-signed session tokens for verified uids."""

    def __init__(self, secret: str, clock: Optional[Clock] = None):
        if not secret:
            raise ValueError("SessionToken requires a non-empty secret")
        self.secret = secret
        self.clock = clock or SystemClock()

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(
            self.secret.encode(),
            payload_b64.encode(),
            hashlib.sha256,
        ).hexdigest()[:32]

    def issue(self, uid: str) -> str:
        """
        Generate a session token for a verified user.

        Args:
            uid: Verified user id

        Returns:
            Signed token "<payload>.<signature>"
        """
        payload = {
            "uid": uid,
            "ts": int(self.clock.timestamp()),
            "ver": "1",
        }

        payload_json = json.dumps(payload, separators=(',', ':'))
        payload_b64 = base64.urlsafe_b64encode(payload_json.encode()).decode()

        return f"{payload_b64}.{self._sign(payload_b64)}"

    def verify(self, token: str, max_age_seconds: int = 24 * 3600) -> Optional[dict]:
        """
        Verify a session token.

        Args:
            token: The session token
            max_age_seconds: Maximum token age

        Returns:
            Payload if valid, None otherwise
        """
        parts = token.split('.')
        if len(parts) != 2:
            return None

        payload_b64, signature = parts
        # Bytes compare: header values may carry non-ASCII characters.
        if not hmac.compare_digest(signature.encode(), self._sign(payload_b64).encode()):
            return None

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode())
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None

        if self.clock.timestamp() - payload.get("ts", 0) > max_age_seconds:
            return None

        return payload
