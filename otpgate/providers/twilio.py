"""
Twilio Transport
================
Fallback SMS transport on the Twilio Messages REST API.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from otpgate.config import TwilioConfig
from otpgate.logging_setup import mask_phone
from otpgate.messaging import normalize_phone, validate_e164

from .base import BaseProviderAdapter, MessageStatus, SendResult

logger = structlog.get_logger(__name__)

API_ROOT = "https://api.twilio.com/2010-04-01"

# Twilio message status -> MessageStatus; anything unlisted is still in flight.
TWILIO_STATUSES = {
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "undelivered": MessageStatus.FAILED,
    "failed": MessageStatus.FAILED,
}


class TwilioAdapter(BaseProviderAdapter):
    """
    Twilio transport.

    Sends from messaging_service_sid when configured, otherwise from
    from_number. Numbers are sent in E.164 using the configured country code.
    """

    name = "twilio"

    def __init__(
        self,
        config: TwilioConfig,
        country_code: str = "91",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self.country_code = country_code
        self.timeout = timeout
        self.account_url = f"{API_ROOT}/Accounts/{config.account_sid}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        self._client = httpx.AsyncClient(
            auth=(self.config.account_sid, self.config.auth_token),
            timeout=self.timeout,
            transport=self._transport,
        )
        await super().initialize()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().close()

    def _sender(self) -> Dict[str, str]:
        if self.config.messaging_service_sid:
            return {"MessagingServiceSid": self.config.messaging_service_sid}
        return {"From": self.config.from_number}

    async def send_sms(
        self,
        to: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        if self._client is None:
            raise RuntimeError("TwilioAdapter used before initialize()")
        if not self.config.is_configured:
            return SendResult.failed("Twilio credentials are not configured", "not_configured")

        recipient = normalize_phone(to, self.country_code)
        if not validate_e164(recipient):
            return SendResult.failed(
                f"Recipient is not a valid E.164 number: {mask_phone(to)}",
                "invalid_number",
                status=MessageStatus.REJECTED,
            )

        form = {"To": recipient, "Body": body, **self._sender()}

        try:
            response = await self._client.post(f"{self.account_url}/Messages.json", data=form)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Twilio request failed", to=mask_phone(to), error=str(e))
            return SendResult.failed(str(e) or e.__class__.__name__)

        if response.status_code != 201:
            return SendResult.failed(
                data.get("message", "Unknown error"),
                str(data.get("code", response.status_code)),
                raw_response=data,
            )

        return SendResult(
            success=True,
            provider_message_id=data.get("sid"),
            status=TWILIO_STATUSES.get(str(data.get("status", "")).lower(), MessageStatus.PENDING),
            raw_response=data,
        )

    async def health_check(self) -> bool:
        """Fetch the account resource; True on HTTP 200."""
        if self._client is None or not self.config.is_configured:
            return False
        try:
            response = await self._client.get(f"{self.account_url}.json")
        except httpx.HTTPError as e:
            logger.warning("Twilio health check failed", error=str(e))
            return False
        return response.status_code == 200
