"""Key-value persistence capability.

The aggregation layer does not own a database. It consumes an async
key-value primitive (get / set / multi_remove of string values) and every
consumer works inside its own key prefix via NamespacedStore:

- archive:   HistoricalArchive (current week pointer + weekly archive)
- fallback:  FallbackCache (last-known values, goals, per-day values)

Backends:
- InMemoryKeyValueStore: process-local dict, used in tests and "memory" mode
- SqlKeyValueStore: one row per key in kv_entries (Postgres upsert)
"""

import asyncio
from typing import Protocol, runtime_checkable
from weakref import WeakKeyDictionary

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from health.domain.orm import KeyValueEntryModel
from shared.exceptions import PersistenceError


@runtime_checkable
class KeyValueStore(Protocol):
    """Async string key-value primitive."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def multi_remove(self, keys: list[str]) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlKeyValueStore:
    """kv_entries-backed store. Each call runs in its own short transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(KeyValueEntryModel.value).where(KeyValueEntryModel.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("get", key, str(exc)) from exc

    async def set(self, key: str, value: str) -> None:
        stmt = pg_insert(KeyValueEntryModel).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError("set", key, str(exc)) from exc

    async def multi_remove(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(KeyValueEntryModel).where(KeyValueEntryModel.key.in_(keys))
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError("multi_remove", ",".join(keys), str(exc)) from exc


class NamespacedStore:
    """View of a store restricted to keys under `prefix`."""

    def __init__(self, store: KeyValueStore, prefix: str) -> None:
        if not prefix.endswith(":"):
            prefix = f"{prefix}:"
        self._store = store
        self.prefix = prefix

    @property
    def root(self) -> KeyValueStore:
        if isinstance(self._store, NamespacedStore):
            return self._store.root
        return self._store

    def qualify(self, key: str) -> str:
        inner = f"{self.prefix}{key}"
        if isinstance(self._store, NamespacedStore):
            return self._store.qualify(inner)
        return inner

    async def get(self, key: str) -> str | None:
        return await self._store.get(f"{self.prefix}{key}")

    async def set(self, key: str, value: str) -> None:
        await self._store.set(f"{self.prefix}{key}", value)

    async def multi_remove(self, keys: list[str]) -> None:
        await self._store.multi_remove([f"{self.prefix}{k}" for k in keys])


_key_locks: "WeakKeyDictionary[object, dict[str, asyncio.Lock]]" = WeakKeyDictionary()


def key_lock(store: KeyValueStore, key: str) -> asyncio.Lock:
    """Return the mutex for one fully-qualified storage key.

    Locks are shared by every view over the same underlying store, so two
    archives built on separate NamespacedStore instances still serialize.
    """
    if isinstance(store, NamespacedStore):
        root, qualified = store.root, store.qualify(key)
    else:
        root, qualified = store, key
    locks = _key_locks.setdefault(root, {})
    lock = locks.get(qualified)
    if lock is None:
        lock = locks[qualified] = asyncio.Lock()
    return lock
