"""
Record Store Contract
=====================
Key-value persistence for OTPs, pending registrations, users and log events.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from otpgate.clock import Clock, SystemClock

Document = Dict[str, Any]
Predicate = Callable[[Document], bool]


class RecordStore(ABC):
    """
    Abstract record store.

    Documents are plain dicts grouped by kind and addressed by key. Writes
    are stamped with server time from the store's clock, never with values
    supplied by the caller. Operations are atomic per key; there are no
    cross-key transactions.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    def _stamp_new(self, value: Document, ttl: Optional[timedelta]) -> Document:
        now = self.clock.now()
        doc = dict(value)
        doc["created_at"] = now
        doc["updated_at"] = now
        if ttl is not None:
            doc["expires_at"] = now + ttl
        return doc

    def _stamp_update(self, partial: Document) -> Document:
        changes = dict(partial)
        changes.pop("created_at", None)
        changes["updated_at"] = self.clock.now()
        return changes

    async def initialize(self) -> None:
        """Prepare backend resources (tables, connections)."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def put(
        self,
        kind: str,
        key: str,
        value: Document,
        ttl: Optional[timedelta] = None,
    ) -> Document:
        """
        Create or overwrite a document.

        Args:
            kind: Record kind (collection name)
            key: Record key within the kind
            value: Document fields
            ttl: When given, expires_at is stamped as now + ttl

        Returns:
            The stored document including server stamps
        """

    @abstractmethod
    async def get(self, kind: str, key: str) -> Optional[Document]:
        """Return a copy of the document, or None when absent."""

    @abstractmethod
    async def delete(self, kind: str, key: str) -> bool:
        """Delete a document. Returns True if something was removed."""

    @abstractmethod
    async def update(self, kind: str, key: str, partial: Document) -> Document:
        """
        Merge fields into an existing document.

        Raises:
            NotFoundError: If the key does not exist
        """

    @abstractmethod
    async def count_where(self, kind: str, predicate: Optional[Predicate] = None) -> int:
        """Count documents of a kind matching the predicate (all when None)."""

    @abstractmethod
    async def delete_where(self, kind: str, predicate: Predicate) -> int:
        """Delete every document of a kind matching the predicate in one batch."""
