"""Durable key-value blob store used to persist the rating cache and the block-list."""
import copy
import json
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import KeyValueEntry

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE.
_UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...


class SqlKeyValueStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Any | None:
        async with self._session_factory() as session:
            row = await session.get(KeyValueEntry, key)
            if row is None:
                return None
            return json.loads(row.value)

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        async with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            if dialect in _UPSERT_INSERTS:
                stmt = _UPSERT_INSERTS[dialect](KeyValueEntry).values(
                    key=key, value=payload, updated_at=datetime.now(timezone.utc)
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[KeyValueEntry.key],
                    set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
                )
                await session.execute(stmt)
            else:
                await session.merge(KeyValueEntry(key=key, value=payload))
            await session.commit()


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
