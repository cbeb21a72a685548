"""
HTTP SMS Panel Adapter
======================
Primary transport: a bulk-SMS panel driven by a query-string GET API.
"""

import httpx
from typing import Optional, Dict, Any
import structlog

from otpgate.config import PanelProviderConfig
from otpgate.logging_setup import mask_phone
from otpgate.messaging import to_international

from .base import BaseProviderAdapter, SendResult, MessageStatus

logger = structlog.get_logger(__name__)

SUCCESS_STATUSES = {"success", "sent"}


class HttpPanelAdapter(BaseProviderAdapter):
    """
    SMS panel adapter.

    The panel takes credentials, sender, route and DLT template id as query
    parameters and answers with a JSON body whose status field says whether
    the message was accepted.
    """

    name = "panel"

    def __init__(
        self,
        config: PanelProviderConfig,
        country_code: str = "91",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self.country_code = country_code
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Create HTTP client."""
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self.config.user_agent},
            timeout=self.timeout,
            transport=self._transport,
        )
        await super().initialize()

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send_sms(
        self,
        to: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        """Send SMS via the panel."""
        if not self._client:
            raise RuntimeError("Adapter not initialized")

        if not self.config.is_configured:
            return SendResult.failed("SMS panel credentials are not configured", "not_configured")

        params = {
            "username": self.config.username,
            "apikey": self.config.api_key,
            "apirequest": "Text",
            "sender": self.config.sender,
            "mobile": to_international(to, self.country_code),
            "message": body,
            "route": self.config.route,
            "TemplateID": self.config.template_id,
            "format": "JSON",
        }

        try:
            response = await self._client.get(self.config.base_url, params=params)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("SMS panel request failed", to=mask_phone(to), error=str(e))
            return SendResult.failed(str(e) or e.__class__.__name__)

        if not isinstance(data, dict):
            return SendResult.failed("Invalid response from SMS provider")

        status = str(data.get("status") or data.get("Status") or "").lower()
        response_code = str(data.get("responsecode") or data.get("ResponseCode") or "")

        if status in SUCCESS_STATUSES or response_code == "200":
            return SendResult(
                success=True,
                provider_message_id=data.get("messageid") or data.get("MessageId"),
                status=MessageStatus.SENT,
                raw_response=data,
            )

        reason = data.get("message") or data.get("Message") or "Unknown error"
        return SendResult.failed(
            f"SMS failed: {reason}",
            response_code or str(response.status_code),
            raw_response=data,
        )

    async def health_check(self) -> bool:
        return self._client is not None and self.config.is_configured
