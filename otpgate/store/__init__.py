"""
Record Store
============
Persistence for OTP, pending-registration, user and log records.
"""

from .base import Document, Predicate, RecordStore
from .memory import InMemoryRecordStore
from .sql import SqlRecordStore

__all__ = [
    "Document",
    "Predicate",
    "RecordStore",
    "InMemoryRecordStore",
    "SqlRecordStore",
]
