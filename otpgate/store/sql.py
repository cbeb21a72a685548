"""
SQL Record Store
================
SQLAlchemy asyncio backend: one `records` table keyed by (kind, key)
holding each document as JSON.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import JSON, String, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from otpgate.clock import Clock
from otpgate.errors import NotFoundError, StoreFailure

from .base import Document, Predicate, RecordStore

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class RecordRow(Base):
    __tablename__ = "records"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)


def _encode(doc: Document) -> Document:
    return {
        k: v.isoformat() if isinstance(v, datetime) else v
        for k, v in doc.items()
    }


def _decode(data: Document) -> Document:
    # Timestamp fields are named *_at by convention.
    decoded: Document = {}
    for k, v in data.items():
        if k.endswith("_at") and isinstance(v, str):
            decoded[k] = datetime.fromisoformat(v)
        else:
            decoded[k] = v
    return decoded


class SqlRecordStore(RecordStore):
    """
    Record store backed by a relational database.

    Usage:
        store = SqlRecordStore("postgresql+asyncpg://...")
        await store.initialize()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
        clock: Optional[Clock] = None,
        pool_size: int = 10,
        max_overflow: int = 20,
        echo: bool = False,
    ):
        super().__init__(clock)
        if engine is None and database_url is None:
            raise ValueError("SqlRecordStore needs a database_url or an engine")

        self._owns_engine = engine is None
        if engine is None:
            engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
            if not database_url.startswith("sqlite"):
                engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow)
            engine = create_async_engine(database_url, **engine_kwargs)

        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def initialize(self) -> None:
        """Create the records table if needed."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to initialize record store: {e}") from e
        logger.info("SQL record store initialized")

    async def close(self) -> None:
        if self._owns_engine:
            await self.engine.dispose()
            logger.info("SQL record store closed")

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on any exception."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Record store operation failed", error=str(e))
                raise StoreFailure(f"Record store operation failed: {e}") from e
            except Exception:
                await session.rollback()
                raise

    async def put(
        self,
        kind: str,
        key: str,
        value: Document,
        ttl: Optional[timedelta] = None,
    ) -> Document:
        doc = self._stamp_new(value, ttl)
        async with self._session() as session:
            await session.merge(RecordRow(kind=kind, key=key, data=_encode(doc)))
        return doc

    async def get(self, kind: str, key: str) -> Optional[Document]:
        async with self._session() as session:
            row = await session.get(RecordRow, (kind, key))
            return _decode(row.data) if row is not None else None

    async def delete(self, kind: str, key: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(RecordRow).where(RecordRow.kind == kind, RecordRow.key == key)
            )
            return result.rowcount > 0

    async def update(self, kind: str, key: str, partial: Document) -> Document:
        changes = self._stamp_update(partial)
        async with self._session() as session:
            row = await session.get(RecordRow, (kind, key), with_for_update=True)
            if row is None:
                raise NotFoundError(kind, key)
            merged = {**_decode(row.data), **changes}
            # Assign a new dict so the JSON column is flagged dirty.
            row.data = _encode(merged)
            return merged

    async def count_where(self, kind: str, predicate: Optional[Predicate] = None) -> int:
        async with self._session() as session:
            if predicate is None:
                result = await session.execute(
                    select(func.count()).select_from(RecordRow).where(RecordRow.kind == kind)
                )
                return int(result.scalar_one())
            rows = await session.scalars(select(RecordRow).where(RecordRow.kind == kind))
            return sum(1 for row in rows if predicate(_decode(row.data)))

    async def delete_where(self, kind: str, predicate: Predicate) -> int:
        async with self._session() as session:
            rows = await session.scalars(select(RecordRow).where(RecordRow.kind == kind))
            keys = [row.key for row in rows if predicate(_decode(row.data))]
            if keys:
                await session.execute(
                    delete(RecordRow).where(RecordRow.kind == kind, RecordRow.key.in_(keys))
                )
            return len(keys)
