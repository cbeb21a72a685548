"""
SMS Transports
==============
Contract shared by every SMS transport the gateway can drive.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class SendResult:
    """What a transport reported for one send."""
    success: bool
    provider_message_id: Optional[str] = None
    status: MessageStatus = MessageStatus.PENDING
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None

    @classmethod
    def failed(
        cls,
        error_message: str,
        error_code: Optional[str] = None,
        raw_response: Optional[Dict[str, Any]] = None,
        status: MessageStatus = MessageStatus.FAILED,
    ) -> "SendResult":
        return cls(
            success=False,
            status=status,
            error_code=error_code,
            error_message=error_message,
            raw_response=raw_response,
        )


class BaseProviderAdapter(ABC):
    """
    An SMS transport.

    send_sms reports provider rejections and HTTP errors through
    SendResult; it raises only for programming errors such as sending
    before initialize(). Timeouts are enforced by the gateway.
    """

    name: str = "base"

    def __init__(self, config: Any = None):
        self.config = config
        self._is_initialized = False

    async def initialize(self) -> None:
        """Acquire resources such as HTTP clients."""
        self._is_initialized = True
        logger.info("SMS transport ready", provider=self.name)

    async def close(self) -> None:
        """Release resources."""
        self._is_initialized = False
        logger.info("SMS transport closed", provider=self.name)

    @abstractmethod
    async def send_sms(
        self,
        to: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        """
        Send one SMS.

        Args:
            to: Recipient as a 10-digit national number
            body: Message text
            metadata: Free-form tracking data

        Returns:
            SendResult
        """

    async def health_check(self) -> bool:
        """True when the transport can be used."""
        return self._is_initialized
