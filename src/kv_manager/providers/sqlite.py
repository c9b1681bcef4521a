"""SQLiteProvider — durable, single-file provider using aiosqlite."""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Callable
from typing import Any, TypeVar

try:
    import aiosqlite
except ImportError as exc:
    raise ImportError(
        "SQLiteProvider requires the 'aiosqlite' package. "
        "Install it with: pip install kv-manager[sqlite]"
    ) from exc

from kv_manager import paths
from kv_manager._internal.callbacks import invoke, is_number, literal_matches
from kv_manager.exceptions import ErrorIdentifier, KVError
from kv_manager.operation import Mode
from kv_manager.payloads import (
    AutoKeyPayload,
    AutoKeyResult,
    ClearPayload,
    DecrementPayload,
    DeletePayload,
    EnsurePayload,
    EnsureResult,
    EveryPayload,
    EveryResult,
    FilterPayload,
    FilterResult,
    FindPayload,
    FindResult,
    GetAllPayload,
    GetAllResult,
    GetManyPayload,
    GetManyResult,
    GetPayload,
    GetResult,
    HasPayload,
    HasResult,
    IncrementPayload,
    KeyPathPayload,
    KeysPayload,
    KeysResult,
    MapPayload,
    MapResult,
    MathPayload,
    PartitionPayload,
    PartitionResult,
    Payload,
    PushPayload,
    RandomKeyPayload,
    RandomKeyResult,
    RandomPayload,
    RandomResult,
    RemovePayload,
    SetManyPayload,
    SetPayload,
    SizePayload,
    SizeResult,
    SomePayload,
    SomeResult,
    UpdatePayload,
    UpdateResult,
    ValuesPayload,
    ValuesResult,
)
from kv_manager.providers.base import (
    Provider,
    ProviderContext,
    apply_math,
    project,
    selects,
)

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=KeyPathPayload)

_MISSING = object()

_CREATE_STORE = """
CREATE TABLE IF NOT EXISTS kv_store (
    name  TEXT NOT NULL,
    key   TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (name, key)
)
"""

_CREATE_META = """
CREATE TABLE IF NOT EXISTS kv_meta (
    name     TEXT PRIMARY KEY,
    auto_key INTEGER NOT NULL DEFAULT 0
)
"""

# Upsert keeps the original rowid, so overwrites preserve insertion order.
_UPSERT = """
INSERT INTO kv_store (name, key, value) VALUES (?, ?, ?)
ON CONFLICT (name, key) DO UPDATE SET value = excluded.value
"""


class SQLiteProvider(Provider):
    """Persistent provider backed by a single SQLite file.

    Entries are stored as JSON text, partitioned by the collection name the
    manager passes to :meth:`init`.  Iteration follows insertion order.
    Values must be JSON-encodable; anything else fails with ``invalid_type``.
    Tuples come back as lists and dict keys as strings.

    Parameters:
        db_path: Path to the SQLite database file.  Use ``":memory:"``
                 for an in-memory database (useful for testing).
        rng:     Random source for :meth:`random` / :meth:`random_key`.
    """

    def __init__(self, db_path: str = "kv_store.db", rng: random.Random | None = None) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._rng = rng or random.Random()

    async def init(self, context: ProviderContext) -> ProviderContext:
        context = await super().init(context)
        try:
            db = await aiosqlite.connect(self._db_path)
            await db.execute(_CREATE_STORE)
            await db.execute(_CREATE_META)
            await db.execute(
                "INSERT OR IGNORE INTO kv_meta (name, auto_key) VALUES (?, 0)",
                (self.name,),
            )
            await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            context.error = KVError(
                ErrorIdentifier.PROVIDER_INIT_FAILED,
                f"Could not open SQLite database '{self._db_path}': {exc}",
            )
            return context

        self._db = db
        logger.debug("SQLiteProvider '%s' opened %s", self.name, self._db_path)
        return context

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    # ── table helpers ────────────────────────────────────────

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteProvider used before init()")
        return self._db

    async def _load(self, key: str) -> Any:
        cursor = await self.db.execute(
            "SELECT value FROM kv_store WHERE name = ? AND key = ?",
            (self.name, key),
        )
        row = await cursor.fetchone()
        if row is None:
            return _MISSING
        return json.loads(row[0])

    def _encode(self, payload: Payload, key: str, value: Any) -> str | None:
        """JSON-encode *value*, failing the payload if it cannot be stored."""
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            self.fail(payload, ErrorIdentifier.INVALID_TYPE, f'Cannot store the data at "{key}" as JSON: {exc}')
            return None

    async def _save(self, key: str, encoded: str) -> None:
        await self.db.execute(_UPSERT, (self.name, key, encoded))
        await self.db.commit()

    async def _entries(self) -> list[tuple[str, Any]]:
        cursor = await self.db.execute(
            "SELECT key, value FROM kv_store WHERE name = ? ORDER BY rowid",
            (self.name,),
        )
        rows = await cursor.fetchall()
        return [(row[0], json.loads(row[1])) for row in rows]

    async def _lookup(self, key: str, path: list[str]) -> Any:
        stored = await self._load(key)
        if stored is _MISSING or not path:
            return stored
        return paths.read(stored, path, _MISSING)

    async def _store(self, payload: K, value: Any) -> bool:
        """Write *value* at the payload's key/path.  Returns ``False`` after failing the payload."""
        key, path = payload.key, payload.path
        if path:
            stored = await self._load(key)
            try:
                value = paths.write(None if stored is _MISSING else stored, path, value)
            except IndexError as exc:
                self.fail(payload, ErrorIdentifier.INVALID_PATH, f'Cannot write to "{paths.render(key, path)}": {exc}')
                return False
        encoded = self._encode(payload, key, value)
        if encoded is None:
            return False
        await self._save(key, encoded)
        return True

    async def _mutate_number(
        self,
        payload: K,
        compute: Callable[[int | float], int | float | None],
    ) -> K:
        key, path = payload.key, payload.path
        current = await self._lookup(key, path)
        if current is _MISSING:
            return self.fail_missing(payload, key, path)
        if not is_number(current):
            return self.fail_type(payload, key, path, "number")

        updated = compute(current)
        if updated is None:
            return self.fail(
                payload,
                ErrorIdentifier.INVALID_VALUE,
                f'Math on the data at "{paths.render(key, path)}" has no real result.',
            )
        await self._store(payload, updated)
        return payload

    async def _list_at(self, payload: K) -> list[Any] | None:
        current = await self._lookup(payload.key, payload.path)
        if current is _MISSING:
            self.fail_missing(payload, payload.key, payload.path)
            return None
        if not isinstance(current, list):
            self.fail_type(payload, payload.key, payload.path, "list")
            return None
        return current

    # ── Provider protocol ────────────────────────────────────

    async def auto_key(self, payload: AutoKeyPayload) -> AutoKeyPayload:
        await self.db.execute(
            "UPDATE kv_meta SET auto_key = auto_key + 1 WHERE name = ?",
            (self.name,),
        )
        cursor = await self.db.execute("SELECT auto_key FROM kv_meta WHERE name = ?", (self.name,))
        row = await cursor.fetchone()
        await self.db.commit()
        return payload.resolve(AutoKeyResult, result=str(row[0] if row else 1))

    async def clear(self, payload: ClearPayload) -> ClearPayload:
        await self.db.execute("DELETE FROM kv_store WHERE name = ?", (self.name,))
        await self.db.execute("UPDATE kv_meta SET auto_key = 0 WHERE name = ?", (self.name,))
        await self.db.commit()
        return payload

    async def decrement(self, payload: DecrementPayload) -> DecrementPayload:
        return await self._mutate_number(payload, lambda current: current - 1)

    async def delete(self, payload: DeletePayload) -> DeletePayload:
        key, path = payload.key, payload.path
        if not path:
            await self.db.execute(
                "DELETE FROM kv_store WHERE name = ? AND key = ?",
                (self.name, key),
            )
            await self.db.commit()
            return payload

        stored = await self._load(key)
        if stored is _MISSING or not paths.exists(stored, path):
            return self.fail_missing(payload, key, path)
        await self._save(key, json.dumps(paths.remove(stored, path)))
        return payload

    async def ensure(self, payload: EnsurePayload) -> EnsurePayload:
        stored = await self._load(payload.key)
        if stored is _MISSING:
            encoded = self._encode(payload, payload.key, payload.default)
            if encoded is None:
                return payload
            await self._save(payload.key, encoded)
            stored = payload.default
        return payload.resolve(EnsureResult, result=stored)

    async def every(self, payload: EveryPayload) -> EveryPayload:
        if not self.check_literal(payload):
            return payload
        entries = await self._entries()
        if not entries:
            return payload.resolve(EveryResult, result=False)

        for _, value in entries:
            if not await selects(payload, value):
                return payload.resolve(EveryResult, result=False)
        return payload.resolve(EveryResult, result=True)

    async def filter(self, payload: FilterPayload) -> FilterPayload:
        if not self.check_literal(payload):
            return payload
        entries = await self._entries()
        matched = {key: value for key, value in entries if await selects(payload, value)}
        return payload.resolve(FilterResult, result=matched)

    async def find(self, payload: FindPayload) -> FindPayload:
        if not self.check_literal(payload):
            return payload
        for _, value in await self._entries():
            if await selects(payload, value):
                return payload.resolve(FindResult, result=value)
        return payload.resolve(FindResult, result=None)

    async def get(self, payload: GetPayload) -> GetPayload:
        value = await self._lookup(payload.key, payload.path)
        return payload.resolve(GetResult, result=None if value is _MISSING else value)

    async def get_all(self, payload: GetAllPayload) -> GetAllPayload:
        return payload.resolve(GetAllResult, result=dict(await self._entries()))

    async def get_many(self, payload: GetManyPayload) -> GetManyPayload:
        result: dict[str, Any] = {}
        for key in payload.keys:
            value = await self._load(key)
            result[key] = None if value is _MISSING else value
        return payload.resolve(GetManyResult, result=result)

    async def has(self, payload: HasPayload) -> HasPayload:
        found = await self._lookup(payload.key, payload.path) is not _MISSING
        return payload.resolve(HasResult, result=found)

    async def increment(self, payload: IncrementPayload) -> IncrementPayload:
        return await self._mutate_number(payload, lambda current: current + 1)

    async def keys(self, payload: KeysPayload) -> KeysPayload:
        cursor = await self.db.execute(
            "SELECT key FROM kv_store WHERE name = ? ORDER BY rowid",
            (self.name,),
        )
        rows = await cursor.fetchall()
        return payload.resolve(KeysResult, result=[row[0] for row in rows])

    async def map(self, payload: MapPayload) -> MapPayload:
        projected = [await project(payload, value) for _, value in await self._entries()]
        return payload.resolve(MapResult, result=projected)

    async def math(self, payload: MathPayload) -> MathPayload:
        return await self._mutate_number(payload, lambda current: apply_math(payload, current))

    async def partition(self, payload: PartitionPayload) -> PartitionPayload:
        if not self.check_literal(payload):
            return payload
        truthy: dict[str, Any] = {}
        falsy: dict[str, Any] = {}
        for key, value in await self._entries():
            if await selects(payload, value):
                truthy[key] = value
            else:
                falsy[key] = value
        return payload.resolve(PartitionResult, truthy=truthy, falsy=falsy)

    async def push(self, payload: PushPayload) -> PushPayload:
        current = await self._list_at(payload)
        if current is None:
            return payload
        current.append(payload.value)
        await self._store(payload, current)
        return payload

    async def random(self, payload: RandomPayload) -> RandomPayload:
        values = [value for _, value in await self._entries()]
        result = self._rng.choice(values) if values else None
        return payload.resolve(RandomResult, result=result)

    async def random_key(self, payload: RandomKeyPayload) -> RandomKeyPayload:
        keys = [key for key, _ in await self._entries()]
        result = self._rng.choice(keys) if keys else None
        return payload.resolve(RandomKeyResult, result=result)

    async def remove(self, payload: RemovePayload) -> RemovePayload:
        if not self.check_literal(payload):
            return payload
        current = await self._list_at(payload)
        if current is None:
            return payload

        if payload.mode is Mode.CALLBACK and payload.callback is not None:
            kept = [item for item in current if not await invoke(payload.callback, item)]
        else:
            kept = [item for item in current if not literal_matches(payload.literal, item)]
        await self._store(payload, kept)
        return payload

    async def set(self, payload: SetPayload) -> SetPayload:
        await self._store(payload, payload.value)
        return payload

    async def set_many(self, payload: SetManyPayload) -> SetManyPayload:
        rows: list[tuple[str, str, str]] = []
        for key, value in payload.entries:
            encoded = self._encode(payload, key, value)
            if encoded is None:
                return payload
            rows.append((self.name, key, encoded))
        await self.db.executemany(_UPSERT, rows)
        await self.db.commit()
        return payload

    async def size(self, payload: SizePayload) -> SizePayload:
        cursor = await self.db.execute("SELECT COUNT(*) FROM kv_store WHERE name = ?", (self.name,))
        row = await cursor.fetchone()
        return payload.resolve(SizeResult, result=row[0] if row else 0)

    async def some(self, payload: SomePayload) -> SomePayload:
        if not self.check_literal(payload):
            return payload
        for _, value in await self._entries():
            if await selects(payload, value):
                return payload.resolve(SomeResult, result=True)
        return payload.resolve(SomeResult, result=False)

    async def update(self, payload: UpdatePayload) -> UpdatePayload:
        current = await self._lookup(payload.key, payload.path)
        if current is _MISSING:
            return payload.resolve(UpdateResult, result=None)

        if payload.mode is Mode.CALLBACK and payload.callback is not None:
            updated = await invoke(payload.callback, current)
        else:
            updated = payload.literal
        if not await self._store(payload, updated):
            return payload
        return payload.resolve(UpdateResult, result=updated)

    async def values(self, payload: ValuesPayload) -> ValuesPayload:
        return payload.resolve(ValuesResult, result=[value for _, value in await self._entries()])
