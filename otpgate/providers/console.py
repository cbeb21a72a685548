"""
Console Adapter
===============
Development fallback that logs the message instead of sending it.
"""

import time
from typing import Optional, Dict, Any
import structlog

from otpgate.logging_setup import mask_phone

from .base import BaseProviderAdapter, SendResult, MessageStatus

logger = structlog.get_logger(__name__)


class ConsoleAdapter(BaseProviderAdapter):
    """Logs outgoing SMS. Refuses to run in production."""

    name = "console"

    def __init__(self, environment: str = "development"):
        super().__init__({"environment": environment})
        self.environment = environment

    async def send_sms(
        self,
        to: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        if self.environment.lower() == "production":
            return SendResult.failed(
                "Console SMS provider is disabled in production",
                status=MessageStatus.REJECTED,
            )

        logger.info("Console SMS", to=mask_phone(to), body=body)
        return SendResult(
            success=True,
            provider_message_id=f"dev_{int(time.time() * 1000)}",
            status=MessageStatus.SENT,
        )
