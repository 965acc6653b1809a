"""Durable CNPJ resolution cache with status-dependent expiry."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from cnpj_pull.config import settings
from cnpj_pull.models import ResolvedEntity
from cnpj_pull.models.database import DBRegistryCache, init_db
from cnpj_pull.models.entity import is_active_status

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached registry payload and its bookkeeping."""

    cnpj: str
    entity: ResolvedEntity
    status: str
    source: str
    fetched_at: datetime
    expires_at: datetime
    hit_count: int
    last_accessed_at: Optional[datetime]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class ResolutionCache:
    """Key-value store of resolved entities keyed by CNPJ.

    Expiry is checked at read time; rows are never actively evicted.
    Active entities expire sooner than inactive ones, since an inactive
    registration rarely changes back.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        active_ttl: Optional[timedelta] = None,
        inactive_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._session_factory = session_factory
        self.active_ttl = active_ttl or timedelta(days=settings.cache_active_ttl_days)
        self.inactive_ttl = inactive_ttl or timedelta(days=settings.cache_inactive_ttl_days)
        self.clock = clock
        self._pending: set[asyncio.Task] = set()

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = init_db()
        return self._session_factory

    def expiry_for(self, status: str, now: datetime) -> datetime:
        ttl = self.active_ttl if is_active_status(status) else self.inactive_ttl
        return now + ttl

    async def get(self, cnpj: str) -> Optional[ResolvedEntity]:
        """Return the cached entity unless missing or expired."""
        entry = await self.get_entry(cnpj)
        if entry is None or entry.is_expired(self.clock()):
            return None
        self._touch_later(cnpj)
        return entry.entity

    async def get_entry(self, cnpj: str) -> Optional[CacheEntry]:
        """Return the raw entry, expired or not, without counting a hit."""
        try:
            return await asyncio.to_thread(self._read, cnpj)
        except SQLAlchemyError as e:
            logger.warning(f"Cache lookup failed for {cnpj}: {e}")
            return None
        except ValueError as e:
            # Stored payload no longer matches the entity model
            logger.warning(f"Unreadable cache row for {cnpj}, ignoring: {e}")
            return None

    async def put(self, entity: ResolvedEntity) -> None:
        await self.put_many([entity])

    async def put_many(self, entities: Iterable[ResolvedEntity]) -> None:
        """Upsert entities in a single statement; last writer wins per CNPJ."""
        by_cnpj = {entity.cnpj: entity for entity in entities}
        if not by_cnpj:
            return
        try:
            await asyncio.to_thread(self._upsert, list(by_cnpj.values()))
        except SQLAlchemyError as e:
            logger.warning(f"Failed to cache {len(by_cnpj)} entities: {e}")

    async def drain(self) -> None:
        """Wait for outstanding hit-count updates."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)

    def _touch_later(self, cnpj: str) -> None:
        task = asyncio.create_task(asyncio.to_thread(self._touch, cnpj))
        self._pending.add(task)
        task.add_done_callback(self._touch_done)

    def _touch_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Hit-count update failed: {error}")

    def _read(self, cnpj: str) -> Optional[CacheEntry]:
        with self.session_factory() as session:
            row = session.get(DBRegistryCache, cnpj)
            if row is None:
                return None
            return CacheEntry(
                cnpj=row.cnpj,
                entity=ResolvedEntity.model_validate_json(row.payload),
                status=row.status or "",
                source=row.source or "",
                fetched_at=row.fetched_at,
                expires_at=row.expires_at,
                hit_count=row.hit_count or 0,
                last_accessed_at=row.last_accessed_at,
            )

    def _touch(self, cnpj: str) -> None:
        with self.session_factory() as session:
            row = session.get(DBRegistryCache, cnpj)
            if row is None:
                return
            row.hit_count = (row.hit_count or 0) + 1
            row.last_accessed_at = self.clock()
            session.commit()

    def _upsert(self, entities: list[ResolvedEntity]) -> None:
        now = self.clock()
        rows = [
            {
                "cnpj": entity.cnpj,
                "payload": entity.model_dump_json(),
                "status": entity.status,
                "source": entity.source,
                "fetched_at": now,
                "expires_at": self.expiry_for(entity.status, now),
                "hit_count": 0,
                "last_accessed_at": now,
            }
            for entity in entities
        ]
        with self.session_factory() as session:
            insert = _dialect_insert(session.get_bind().dialect.name)
            stmt = insert(DBRegistryCache).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=[DBRegistryCache.cnpj],
                set_={
                    "payload": stmt.excluded.payload,
                    "status": stmt.excluded.status,
                    "source": stmt.excluded.source,
                    "fetched_at": stmt.excluded.fetched_at,
                    "expires_at": stmt.excluded.expires_at,
                    "last_accessed_at": stmt.excluded.last_accessed_at,
                },
            )
            session.execute(stmt)
            session.commit()


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise SQLAlchemyError(f"Upsert not supported for dialect {dialect_name}")
    return insert
