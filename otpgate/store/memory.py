"""
In-Memory Record Store
======================
Dict-backed record store for development, tests and single-process use.
"""

import copy
from datetime import timedelta
from typing import Dict, Optional

import structlog

from otpgate.clock import Clock
from otpgate.errors import NotFoundError

from .base import Document, Predicate, RecordStore

logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """
    Record store kept in process memory.

    Documents are deep-copied on the way in and out so callers never share
    mutable state with the store. No await happens between read and write,
    so each operation is atomic within the event loop.
    """

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._data: Dict[str, Dict[str, Document]] = {}

    def _bucket(self, kind: str) -> Dict[str, Document]:
        return self._data.setdefault(kind, {})

    async def put(
        self,
        kind: str,
        key: str,
        value: Document,
        ttl: Optional[timedelta] = None,
    ) -> Document:
        doc = self._stamp_new(value, ttl)
        self._bucket(kind)[key] = copy.deepcopy(doc)
        return doc

    async def get(self, kind: str, key: str) -> Optional[Document]:
        doc = self._bucket(kind).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def delete(self, kind: str, key: str) -> bool:
        return self._bucket(kind).pop(key, None) is not None

    async def update(self, kind: str, key: str, partial: Document) -> Document:
        bucket = self._bucket(kind)
        if key not in bucket:
            raise NotFoundError(kind, key)
        bucket[key].update(copy.deepcopy(self._stamp_update(partial)))
        return copy.deepcopy(bucket[key])

    async def count_where(self, kind: str, predicate: Optional[Predicate] = None) -> int:
        docs = self._bucket(kind).values()
        if predicate is None:
            return len(docs)
        return sum(1 for doc in docs if predicate(doc))

    async def delete_where(self, kind: str, predicate: Predicate) -> int:
        bucket = self._bucket(kind)
        doomed = [key for key, doc in bucket.items() if predicate(doc)]
        for key in doomed:
            del bucket[key]
        if doomed:
            logger.debug("Batch delete", kind=kind, count=len(doomed))
        return len(doomed)
