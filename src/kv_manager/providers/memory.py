"""MemoryProvider — zero-config, dict-backed provider for development and testing."""

from __future__ import annotations

import random
from collections.abc import Callable
from copy import deepcopy
from typing import Any, TypeVar

from kv_manager import paths
from kv_manager._internal.callbacks import invoke, is_number, literal_matches
from kv_manager.exceptions import ErrorIdentifier
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
from kv_manager.providers.base import Provider, apply_math, project, selects

K = TypeVar("K", bound=KeyPathPayload)

_MISSING = object()


class MemoryProvider(Provider):
    """In-memory provider backed by an insertion-ordered dict.  Data is lost on exit.

    Values are deep-copied on the way in and on the way out, so callers
    never hold a reference into the table.  No handler awaits between
    reading and writing the table.  Callback-driven writes (update, remove)
    re-run the callback if the entry was replaced while it was awaited, so
    a callback may be called more than once for a single call.

    Parameters:
        rng: Random source for :meth:`random` / :meth:`random_key`.
             Inject a seeded ``random.Random`` in tests.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._auto_key_count = 0
        self._rng = rng or random.Random()

    # ── table helpers ────────────────────────────────────────

    def _lookup(self, key: str, path: list[str]) -> Any:
        stored = self._data.get(key, _MISSING)
        if stored is _MISSING or not path:
            return stored
        return paths.read(stored, path, _MISSING)

    def _store(self, payload: K, value: Any) -> bool:
        """Write *value* at the payload's key/path, failing the payload on an invalid list index."""
        key, path = payload.key, payload.path
        if not path:
            self._data[key] = deepcopy(value)
            return True
        try:
            self._data[key] = paths.write(self._data.get(key), path, deepcopy(value))
        except IndexError as exc:
            self.fail(payload, ErrorIdentifier.INVALID_PATH, f'Cannot write to "{paths.render(key, path)}": {exc}')
            return False
        return True

    def _snapshot(self) -> list[tuple[str, Any]]:
        return [(key, deepcopy(value)) for key, value in self._data.items()]

    def _mutate_number(
        self,
        payload: K,
        compute: Callable[[int | float], int | float | None],
    ) -> K:
        key, path = payload.key, payload.path
        current = self._lookup(key, path)
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
        self._store(payload, updated)
        return payload

    def _list_at(self, payload: K) -> list[Any] | None:
        """Return the list at the payload's key/path, failing the payload if there is none."""
        current = self._lookup(payload.key, payload.path)
        if current is _MISSING:
            self.fail_missing(payload, payload.key, payload.path)
            return None
        if not isinstance(current, list):
            self.fail_type(payload, payload.key, payload.path, "list")
            return None
        return deepcopy(current)

    # ── Provider protocol ────────────────────────────────────

    async def auto_key(self, payload: AutoKeyPayload) -> AutoKeyPayload:
        self._auto_key_count += 1
        return payload.resolve(AutoKeyResult, result=str(self._auto_key_count))

    async def clear(self, payload: ClearPayload) -> ClearPayload:
        self._data.clear()
        self._auto_key_count = 0
        return payload

    async def decrement(self, payload: DecrementPayload) -> DecrementPayload:
        return self._mutate_number(payload, lambda current: current - 1)

    async def delete(self, payload: DeletePayload) -> DeletePayload:
        key, path = payload.key, payload.path
        if not path:
            self._data.pop(key, None)
            return payload

        stored = self._data.get(key, _MISSING)
        if stored is _MISSING or not paths.exists(stored, path):
            return self.fail_missing(payload, key, path)
        self._data[key] = paths.remove(stored, path)
        return payload

    async def ensure(self, payload: EnsurePayload) -> EnsurePayload:
        if payload.key not in self._data:
            self._data[payload.key] = deepcopy(payload.default)
        return payload.resolve(EnsureResult, result=deepcopy(self._data[payload.key]))

    async def every(self, payload: EveryPayload) -> EveryPayload:
        if not self.check_literal(payload):
            return payload
        if not self._data:
            return payload.resolve(EveryResult, result=False)

        for _, value in self._snapshot():
            if not await selects(payload, value):
                return payload.resolve(EveryResult, result=False)
        return payload.resolve(EveryResult, result=True)

    async def filter(self, payload: FilterPayload) -> FilterPayload:
        if not self.check_literal(payload):
            return payload
        matched = {key: value for key, value in self._snapshot() if await selects(payload, value)}
        return payload.resolve(FilterResult, result=matched)

    async def find(self, payload: FindPayload) -> FindPayload:
        if not self.check_literal(payload):
            return payload
        for _, value in self._snapshot():
            if await selects(payload, value):
                return payload.resolve(FindResult, result=value)
        return payload.resolve(FindResult, result=None)

    async def get(self, payload: GetPayload) -> GetPayload:
        value = self._lookup(payload.key, payload.path)
        result = None if value is _MISSING else deepcopy(value)
        return payload.resolve(GetResult, result=result)

    async def get_all(self, payload: GetAllPayload) -> GetAllPayload:
        return payload.resolve(GetAllResult, result=dict(self._snapshot()))

    async def get_many(self, payload: GetManyPayload) -> GetManyPayload:
        result = {key: deepcopy(self._data.get(key)) for key in payload.keys}
        return payload.resolve(GetManyResult, result=result)

    async def has(self, payload: HasPayload) -> HasPayload:
        found = self._lookup(payload.key, payload.path) is not _MISSING
        return payload.resolve(HasResult, result=found)

    async def increment(self, payload: IncrementPayload) -> IncrementPayload:
        return self._mutate_number(payload, lambda current: current + 1)

    async def keys(self, payload: KeysPayload) -> KeysPayload:
        return payload.resolve(KeysResult, result=list(self._data))

    async def map(self, payload: MapPayload) -> MapPayload:
        projected = [await project(payload, value) for _, value in self._snapshot()]
        return payload.resolve(MapResult, result=projected)

    async def math(self, payload: MathPayload) -> MathPayload:
        return self._mutate_number(payload, lambda current: apply_math(payload, current))

    async def partition(self, payload: PartitionPayload) -> PartitionPayload:
        if not self.check_literal(payload):
            return payload
        truthy: dict[str, Any] = {}
        falsy: dict[str, Any] = {}
        for key, value in self._snapshot():
            if await selects(payload, value):
                truthy[key] = value
            else:
                falsy[key] = value
        return payload.resolve(PartitionResult, truthy=truthy, falsy=falsy)

    async def push(self, payload: PushPayload) -> PushPayload:
        current = self._list_at(payload)
        if current is None:
            return payload
        current.append(payload.value)
        self._store(payload, current)
        return payload

    async def random(self, payload: RandomPayload) -> RandomPayload:
        values = list(self._data.values())
        result = deepcopy(self._rng.choice(values)) if values else None
        return payload.resolve(RandomResult, result=result)

    async def random_key(self, payload: RandomKeyPayload) -> RandomKeyPayload:
        keys = list(self._data)
        result = self._rng.choice(keys) if keys else None
        return payload.resolve(RandomKeyResult, result=result)

    async def remove(self, payload: RemovePayload) -> RemovePayload:
        if not self.check_literal(payload):
            return payload
        while True:
            stored = self._data.get(payload.key, _MISSING)
            current = self._list_at(payload)
            if current is None:
                return payload

            if payload.mode is Mode.CALLBACK and payload.callback is not None:
                kept = [item for item in current if not await invoke(payload.callback, item)]
                if self._data.get(payload.key, _MISSING) is not stored:
                    continue
            else:
                kept = [item for item in current if not literal_matches(payload.literal, item)]
            self._store(payload, kept)
            return payload

    async def set(self, payload: SetPayload) -> SetPayload:
        self._store(payload, payload.value)
        return payload

    async def set_many(self, payload: SetManyPayload) -> SetManyPayload:
        for key, value in payload.entries:
            self._data[key] = deepcopy(value)
        return payload

    async def size(self, payload: SizePayload) -> SizePayload:
        return payload.resolve(SizeResult, result=len(self._data))

    async def some(self, payload: SomePayload) -> SomePayload:
        if not self.check_literal(payload):
            return payload
        for _, value in self._snapshot():
            if await selects(payload, value):
                return payload.resolve(SomeResult, result=True)
        return payload.resolve(SomeResult, result=False)

    async def update(self, payload: UpdatePayload) -> UpdatePayload:
        while True:
            stored = self._data.get(payload.key, _MISSING)
            current = self._lookup(payload.key, payload.path)
            if current is _MISSING:
                return payload.resolve(UpdateResult, result=None)

            if payload.mode is Mode.CALLBACK and payload.callback is not None:
                updated = await invoke(payload.callback, deepcopy(current))
                if self._data.get(payload.key, _MISSING) is not stored:
                    continue
            else:
                updated = payload.literal
            if not self._store(payload, updated):
                return payload
            return payload.resolve(UpdateResult, result=deepcopy(updated))

    async def values(self, payload: ValuesPayload) -> ValuesPayload:
        return payload.resolve(ValuesResult, result=[value for _, value in self._snapshot()])
