"""Provider protocol — the contract every storage backend implements."""

from __future__ import annotations

import operator as _op
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from kv_manager import paths
from kv_manager._internal.callbacks import invoke, is_primitive, literal_matches
from kv_manager.exceptions import ErrorIdentifier, ProviderError
from kv_manager.operation import MathOperator, Mode, Operation
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
    KeyPathPayload,
    KeysPayload,
    MapPayload,
    MathPayload,
    PartitionPayload,
    Payload,
    PushPayload,
    RandomKeyPayload,
    RandomPayload,
    RemovePayload,
    SelectionPayload,
    SetManyPayload,
    SetPayload,
    SizePayload,
    SomePayload,
    UpdatePayload,
    ValuesPayload,
)

if TYPE_CHECKING:
    from kv_manager.exceptions import KVError
    from kv_manager.manager import KVManager

P = TypeVar("P", bound=Payload)

_MATH: dict[MathOperator, Callable[[Any, Any], Any]] = {
    MathOperator.ADD: _op.add,
    MathOperator.SUBTRACT: _op.sub,
    MathOperator.MULTIPLY: _op.mul,
    MathOperator.DIVIDE: _op.truediv,
    MathOperator.REMAINDER: _op.mod,
    MathOperator.EXPONENT: _op.pow,
}


@dataclass
class ProviderContext:
    """Handed to :meth:`Provider.init` by the manager.

    A provider sets ``error`` to abort startup.
    """

    name: str
    manager: KVManager
    error: KVError | None = None


class Provider(ABC):
    """Abstract base for all storage backends.

    One async handler per :class:`Operation`.  A handler receives the
    operation's request payload and returns it, or for operations that
    produce a value, the matching result payload built with
    :meth:`Payload.resolve`.

    Expected failures (missing data, wrong type, bad literal) are never
    raised: call :meth:`fail` and return the payload.  Exceptions escaping
    a handler are treated as programming errors and propagate unchanged.
    """

    name: str
    manager: KVManager

    async def init(self, context: ProviderContext) -> ProviderContext:
        """Called once by :meth:`KVManager.init`.

        Subclasses should call ``super().init(context)`` first, then open
        connections, create tables, etc.
        """
        self.name = context.name
        self.manager = context.manager
        return context

    async def close(self) -> None:  # noqa: B027
        """Release any resources.  No-op by default."""

    # ── failure helpers ──────────────────────────────────────

    def fail(self, payload: P, identifier: ErrorIdentifier, message: str) -> P:
        payload.error = ProviderError(identifier, message, operation=payload.operation)
        return payload

    def fail_missing(self, payload: P, key: str, path: list[str]) -> P:
        return self.fail(
            payload,
            ErrorIdentifier.MISSING_DATA,
            f'The data at "{paths.render(key, path)}" does not exist.',
        )

    def fail_type(self, payload: P, key: str, path: list[str], expected: str) -> P:
        return self.fail(
            payload,
            ErrorIdentifier.INVALID_TYPE,
            f'The data at "{paths.render(key, path)}" must be of type "{expected}".',
        )

    def check_literal(self, payload: SelectionPayload | RemovePayload) -> bool:
        """Fail *payload* and return ``False`` if its literal is not primitive."""
        if payload.mode is Mode.LITERAL and not is_primitive(payload.literal):
            self.fail(payload, ErrorIdentifier.INVALID_VALUE, 'The "literal" must be a primitive type.')
            return False
        return True

    # ── operations ───────────────────────────────────────────

    @abstractmethod
    async def auto_key(self, payload: AutoKeyPayload) -> AutoKeyPayload: ...

    @abstractmethod
    async def clear(self, payload: ClearPayload) -> ClearPayload: ...

    @abstractmethod
    async def decrement(self, payload: DecrementPayload) -> DecrementPayload: ...

    @abstractmethod
    async def delete(self, payload: DeletePayload) -> DeletePayload: ...

    @abstractmethod
    async def ensure(self, payload: EnsurePayload) -> EnsurePayload: ...

    @abstractmethod
    async def every(self, payload: EveryPayload) -> EveryPayload: ...

    @abstractmethod
    async def filter(self, payload: FilterPayload) -> FilterPayload: ...

    @abstractmethod
    async def find(self, payload: FindPayload) -> FindPayload: ...

    @abstractmethod
    async def get(self, payload: GetPayload) -> GetPayload: ...

    @abstractmethod
    async def get_all(self, payload: GetAllPayload) -> GetAllPayload: ...

    @abstractmethod
    async def get_many(self, payload: GetManyPayload) -> GetManyPayload: ...

    @abstractmethod
    async def has(self, payload: HasPayload) -> HasPayload: ...

    @abstractmethod
    async def increment(self, payload: IncrementPayload) -> IncrementPayload: ...

    @abstractmethod
    async def keys(self, payload: KeysPayload) -> KeysPayload: ...

    @abstractmethod
    async def map(self, payload: MapPayload) -> MapPayload: ...

    @abstractmethod
    async def math(self, payload: MathPayload) -> MathPayload: ...

    @abstractmethod
    async def partition(self, payload: PartitionPayload) -> PartitionPayload: ...

    @abstractmethod
    async def push(self, payload: PushPayload) -> PushPayload: ...

    @abstractmethod
    async def random(self, payload: RandomPayload) -> RandomPayload: ...

    @abstractmethod
    async def random_key(self, payload: RandomKeyPayload) -> RandomKeyPayload: ...

    @abstractmethod
    async def remove(self, payload: RemovePayload) -> RemovePayload: ...

    @abstractmethod
    async def set(self, payload: SetPayload) -> SetPayload: ...

    @abstractmethod
    async def set_many(self, payload: SetManyPayload) -> SetManyPayload: ...

    @abstractmethod
    async def size(self, payload: SizePayload) -> SizePayload: ...

    @abstractmethod
    async def some(self, payload: SomePayload) -> SomePayload: ...

    @abstractmethod
    async def update(self, payload: UpdatePayload) -> UpdatePayload: ...

    @abstractmethod
    async def values(self, payload: ValuesPayload) -> ValuesPayload: ...


Handler = Callable[[Provider, Any], Awaitable[Payload]]

PROVIDER_HANDLERS: dict[Operation, Handler] = {
    Operation.AUTO_KEY: lambda provider, payload: provider.auto_key(payload),
    Operation.CLEAR: lambda provider, payload: provider.clear(payload),
    Operation.DECREMENT: lambda provider, payload: provider.decrement(payload),
    Operation.DELETE: lambda provider, payload: provider.delete(payload),
    Operation.ENSURE: lambda provider, payload: provider.ensure(payload),
    Operation.EVERY: lambda provider, payload: provider.every(payload),
    Operation.FILTER: lambda provider, payload: provider.filter(payload),
    Operation.FIND: lambda provider, payload: provider.find(payload),
    Operation.GET: lambda provider, payload: provider.get(payload),
    Operation.GET_ALL: lambda provider, payload: provider.get_all(payload),
    Operation.GET_MANY: lambda provider, payload: provider.get_many(payload),
    Operation.HAS: lambda provider, payload: provider.has(payload),
    Operation.INCREMENT: lambda provider, payload: provider.increment(payload),
    Operation.KEYS: lambda provider, payload: provider.keys(payload),
    Operation.MAP: lambda provider, payload: provider.map(payload),
    Operation.MATH: lambda provider, payload: provider.math(payload),
    Operation.PARTITION: lambda provider, payload: provider.partition(payload),
    Operation.PUSH: lambda provider, payload: provider.push(payload),
    Operation.RANDOM: lambda provider, payload: provider.random(payload),
    Operation.RANDOM_KEY: lambda provider, payload: provider.random_key(payload),
    Operation.REMOVE: lambda provider, payload: provider.remove(payload),
    Operation.SET: lambda provider, payload: provider.set(payload),
    Operation.SET_MANY: lambda provider, payload: provider.set_many(payload),
    Operation.SIZE: lambda provider, payload: provider.size(payload),
    Operation.SOME: lambda provider, payload: provider.some(payload),
    Operation.UPDATE: lambda provider, payload: provider.update(payload),
    Operation.VALUES: lambda provider, payload: provider.values(payload),
}


# ── shared evaluation helpers ────────────────────────────────


async def selects(payload: SelectionPayload, value: Any) -> bool:
    """Return whether a stored *value* satisfies the payload's selector."""
    if payload.mode is Mode.CALLBACK and payload.callback is not None:
        return bool(await invoke(payload.callback, value))
    projected = paths.read(value, payload.path) if payload.path else value
    return literal_matches(payload.literal, projected)


async def project(payload: MapPayload, value: Any) -> Any:
    if payload.mode is Mode.CALLBACK and payload.callback is not None:
        return await invoke(payload.callback, value)
    return paths.read(value, payload.path) if payload.path else value


def apply_math(payload: MathPayload, current: int | float) -> int | float | None:
    """Return the new value, or ``None`` if the result is undefined or not a real number."""
    try:
        result = _MATH[payload.operator](current, payload.operand)
    except (ZeroDivisionError, OverflowError):
        return None
    if isinstance(result, complex):
        return None
    return result
