# carewatch/adapters/sql_store.py
"""
Key-value store on SQLAlchemy's async engine.

One row per key; values are JSON text. SQLite (aiosqlite) is the device default;
a MySQL DSN ("mysql+aiomysql://...") works too and upserts with
INSERT ... ON DUPLICATE KEY UPDATE.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, delete, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from carewatch.core.errors import PersistenceFailure
from carewatch.core.logging_utils import kv

metadata = MetaData()

kv_store = Table(
    "kv_store",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("value", Text, nullable=False),  # JSON document
    Column("updated_at", DateTime, nullable=False),  # UTC naive
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlKeyValueStore:
    def __init__(self, dsn: str, *, echo: bool = False):
        self.dsn = dsn
        self.echo = echo
        self.log = logging.getLogger("carewatch.sql_store")
        self._engine: AsyncEngine | None = None
        self._ready = False

    def engine(self) -> AsyncEngine:
        """Lazily create the AsyncEngine (and the SQLite file's directory)."""
        if self._engine is None:
            url = make_url(self.dsn)
            if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
                folder = os.path.dirname(url.database)
                if folder:
                    os.makedirs(folder, exist_ok=True)
            self._engine = create_async_engine(self.dsn, pool_pre_ping=True, echo=self.echo)
        return self._engine

    @property
    def dialect(self) -> str:
        return make_url(self.dsn).get_backend_name()

    async def init(self) -> None:
        if self._ready:
            return
        try:
            async with self.engine().begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"schema init failed: {e}") from e
        self._ready = True
        self.log.debug("sql_store.ready " + kv(dialect=self.dialect))

    async def get(self, key: str) -> Optional[Any]:
        await self.init()
        stmt = select(kv_store.c.value).where(kv_store.c.key == key)
        try:
            async with self.engine().begin() as conn:
                row = (await conn.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"get {key!r} failed: {e}") from e
        return json.loads(row[0]) if row else None

    async def set(self, key: str, value: Any) -> None:
        await self.init()
        try:
            async with self.engine().begin() as conn:
                await conn.execute(self._upsert(key, json.dumps(value)))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"set {key!r} failed: {e}") from e

    async def remove(self, key: str) -> None:
        await self.init()
        try:
            async with self.engine().begin() as conn:
                await conn.execute(delete(kv_store).where(kv_store.c.key == key))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"remove {key!r} failed: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._ready = False

    def _upsert(self, key: str, payload: str):
        values = dict(key=key, value=payload, updated_at=_utcnow())
        if self.dialect == "mysql":
            stmt = mysql_insert(kv_store).values(**values)
            return stmt.on_duplicate_key_update(
                value=stmt.inserted.value,
                updated_at=stmt.inserted.updated_at,
            )
        stmt = sqlite_insert(kv_store).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[kv_store.c.key],
            set_=dict(value=stmt.excluded.value, updated_at=stmt.excluded.updated_at),
        )
