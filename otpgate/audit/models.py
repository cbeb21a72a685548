"""
Event Models
============
Data model for diagnostic log entries.
"""

from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict


@dataclass
class LogEvent:
    """An append-only diagnostic log entry."""
    id: str
    event_type: str
    payload: Dict[str, Any]
    timestamp: datetime
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d['timestamp'] = self.timestamp.isoformat()
        return d
