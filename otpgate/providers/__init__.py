"""
SMS Provider Adapters
=====================
Transports used by the messaging gateway.
"""

from .base import BaseProviderAdapter, MessageStatus, SendResult
from .console import ConsoleAdapter
from .http_panel import HttpPanelAdapter
from .twilio import TwilioAdapter

__all__ = [
    "BaseProviderAdapter",
    "MessageStatus",
    "SendResult",
    "ConsoleAdapter",
    "HttpPanelAdapter",
    "TwilioAdapter",
]
