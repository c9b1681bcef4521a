"""Middleware ABC — cross-cutting hooks around every provider call."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from kv_manager.operation import Operation, Phase

if TYPE_CHECKING:
    from kv_manager.manager import KVManager
    from kv_manager.payloads import (
        AutoKeyPayload,
        ClearPayload,
        DecrementPayload,
        DeletePayload,
        EnsurePayload,
        EveryPayload,
        FilterPayload,
        FindPayload,
        GetAllPayload,
        GetManyPayload,
        GetPayload,
        HasPayload,
        IncrementPayload,
        KeysPayload,
        MapPayload,
        MathPayload,
        PartitionPayload,
        Payload,
        PushPayload,
        RandomKeyPayload,
        RandomPayload,
        RemovePayload,
        SetManyPayload,
        SetPayload,
        SizePayload,
        SomePayload,
        UpdatePayload,
        ValuesPayload,
    )
    from kv_manager.providers.base import Provider


@dataclass(frozen=True)
class Condition:
    """Activates a middleware for ``operations`` during ``phase``."""

    operations: frozenset[Operation]
    phase: Phase = Phase.POST_PROVIDER

    @classmethod
    def of(cls, operations: Iterable[Operation | str], phase: Phase | str = Phase.POST_PROVIDER) -> Condition:
        """Build a condition, accepting operation and phase names as plain strings."""
        return cls(operations=frozenset(Operation(op) for op in operations), phase=Phase(phase))

    def matches(self, operation: Operation, phase: Phase) -> bool:
        return phase == self.phase and operation in self.operations


class Middleware(ABC):
    """Base class for every middleware.

    Subclasses **must** define a ``name`` property (or class attribute) and
    declare ``conditions``.  Override the handler named after each
    operation you care about; every handler defaults to returning the
    payload unchanged.

    Middleware may:
    * Read and mutate the payload it receives, and must return it.
    * Fail the call by setting ``payload.error``.
    * Use ``self.manager`` / ``self.provider`` (injected by the manager).

    Pre-provider handlers see the request payload; post-provider handlers
    see the result payload, or the request payload with ``error`` set.

    Class Variables:
        _middleware_type: Type identifier for serialization (e.g., "auto_ensure").
        _middleware_description: Human-readable description of the middleware.
    """

    _middleware_type: ClassVar[str] = "base"
    _middleware_description: ClassVar[str] = ""

    position: int | None = None
    conditions: tuple[Condition, ...] = ()
    enabled: bool = True

    manager: KVManager

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this middleware instance."""
        ...

    async def setup(self, manager: KVManager) -> None:
        """Called once when the middleware is added to a manager.

        The default implementation just stores the reference.
        """
        self.manager = manager

    @property
    def provider(self) -> Provider:
        return self.manager.provider

    def applies_to(self, operation: Operation, phase: Phase) -> bool:
        return any(condition.matches(operation, phase) for condition in self.conditions)

    async def run(self, payload: Payload) -> Payload:
        """Route *payload* to the handler for its operation."""
        return await MIDDLEWARE_HANDLERS[payload.operation](self, payload)

    # ── introspection ─────────────────────────────────────────

    def export(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of this middleware.

        Subclasses should call ``super().export()`` and populate the
        ``"config"`` key in the returned dict.
        """
        return {
            "name": self.name,
            "type": self._middleware_type,
            "description": self._middleware_description,
            "position": self.position,
            "enabled": self.enabled,
            "conditions": [
                {
                    "operations": sorted(op.value for op in condition.operations),
                    "phase": condition.phase.value,
                }
                for condition in self.conditions
            ],
            "config": {},
        }

    # ── operation handlers (identity by default) ─────────────

    async def auto_key(self, payload: AutoKeyPayload) -> AutoKeyPayload:
        return payload

    async def clear(self, payload: ClearPayload) -> ClearPayload:
        return payload

    async def decrement(self, payload: DecrementPayload) -> DecrementPayload:
        return payload

    async def delete(self, payload: DeletePayload) -> DeletePayload:
        return payload

    async def ensure(self, payload: EnsurePayload) -> EnsurePayload:
        return payload

    async def every(self, payload: EveryPayload) -> EveryPayload:
        return payload

    async def filter(self, payload: FilterPayload) -> FilterPayload:
        return payload

    async def find(self, payload: FindPayload) -> FindPayload:
        return payload

    async def get(self, payload: GetPayload) -> GetPayload:
        return payload

    async def get_all(self, payload: GetAllPayload) -> GetAllPayload:
        return payload

    async def get_many(self, payload: GetManyPayload) -> GetManyPayload:
        return payload

    async def has(self, payload: HasPayload) -> HasPayload:
        return payload

    async def increment(self, payload: IncrementPayload) -> IncrementPayload:
        return payload

    async def keys(self, payload: KeysPayload) -> KeysPayload:
        return payload

    async def map(self, payload: MapPayload) -> MapPayload:
        return payload

    async def math(self, payload: MathPayload) -> MathPayload:
        return payload

    async def partition(self, payload: PartitionPayload) -> PartitionPayload:
        return payload

    async def push(self, payload: PushPayload) -> PushPayload:
        return payload

    async def random(self, payload: RandomPayload) -> RandomPayload:
        return payload

    async def random_key(self, payload: RandomKeyPayload) -> RandomKeyPayload:
        return payload

    async def remove(self, payload: RemovePayload) -> RemovePayload:
        return payload

    async def set(self, payload: SetPayload) -> SetPayload:
        return payload

    async def set_many(self, payload: SetManyPayload) -> SetManyPayload:
        return payload

    async def size(self, payload: SizePayload) -> SizePayload:
        return payload

    async def some(self, payload: SomePayload) -> SomePayload:
        return payload

    async def update(self, payload: UpdatePayload) -> UpdatePayload:
        return payload

    async def values(self, payload: ValuesPayload) -> ValuesPayload:
        return payload


Handler = Callable[[Middleware, Any], Awaitable[Any]]

MIDDLEWARE_HANDLERS: dict[Operation, Handler] = {
    Operation.AUTO_KEY: lambda middleware, payload: middleware.auto_key(payload),
    Operation.CLEAR: lambda middleware, payload: middleware.clear(payload),
    Operation.DECREMENT: lambda middleware, payload: middleware.decrement(payload),
    Operation.DELETE: lambda middleware, payload: middleware.delete(payload),
    Operation.ENSURE: lambda middleware, payload: middleware.ensure(payload),
    Operation.EVERY: lambda middleware, payload: middleware.every(payload),
    Operation.FILTER: lambda middleware, payload: middleware.filter(payload),
    Operation.FIND: lambda middleware, payload: middleware.find(payload),
    Operation.GET: lambda middleware, payload: middleware.get(payload),
    Operation.GET_ALL: lambda middleware, payload: middleware.get_all(payload),
    Operation.GET_MANY: lambda middleware, payload: middleware.get_many(payload),
    Operation.HAS: lambda middleware, payload: middleware.has(payload),
    Operation.INCREMENT: lambda middleware, payload: middleware.increment(payload),
    Operation.KEYS: lambda middleware, payload: middleware.keys(payload),
    Operation.MAP: lambda middleware, payload: middleware.map(payload),
    Operation.MATH: lambda middleware, payload: middleware.math(payload),
    Operation.PARTITION: lambda middleware, payload: middleware.partition(payload),
    Operation.PUSH: lambda middleware, payload: middleware.push(payload),
    Operation.RANDOM: lambda middleware, payload: middleware.random(payload),
    Operation.RANDOM_KEY: lambda middleware, payload: middleware.random_key(payload),
    Operation.REMOVE: lambda middleware, payload: middleware.remove(payload),
    Operation.SET: lambda middleware, payload: middleware.set(payload),
    Operation.SET_MANY: lambda middleware, payload: middleware.set_many(payload),
    Operation.SIZE: lambda middleware, payload: middleware.size(payload),
    Operation.SOME: lambda middleware, payload: middleware.some(payload),
    Operation.UPDATE: lambda middleware, payload: middleware.update(payload),
    Operation.VALUES: lambda middleware, payload: middleware.values(payload),
}
