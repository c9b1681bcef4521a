"""Payloads — the records threaded through middleware and providers.

Every operation has a *request* payload built by the facade.  Operations
that produce a value also have a *result* payload: a subclass of the
request that adds the ``result`` field.  Providers turn the former into
the latter with :meth:`Payload.resolve`, so ``result`` only ever exists
once the provider has run.  A provider that fails sets ``error`` and hands
back the request payload unchanged.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from kv_manager.operation import MathOperator, Mode, Operation, Phase

if TYPE_CHECKING:
    from kv_manager.exceptions import KVError

# Callbacks receive a stored value and may be sync or async.
Callback = Callable[[Any], Any]

P = TypeVar("P", bound="Payload")


@dataclass(kw_only=True)
class Payload:
    """Fields every payload carries.

    Attributes:
        phase:    Set by the facade; tells middleware which side of the
                  provider call it is running on.
        error:    Set by a provider or middleware to fail the call.  Once
                  set it is never cleared.
        metadata: Scratchpad shared by the middleware of a single call,
                  e.g. to carry a start time from the pre to the post pass.
    """

    operation: ClassVar[Operation]

    phase: Phase = Phase.UNSET
    error: KVError | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolve(self, result_type: type[P], **values: Any) -> P:
        """Return *result_type* carrying this payload's fields plus *values*."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update(values)
        return result_type(**data)


@dataclass(kw_only=True)
class KeyPathPayload(Payload):
    """A payload addressing ``path`` inside the value stored at ``key``."""

    key: str
    path: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class SelectionPayload(Payload):
    """A search payload selecting entries by literal or by callback.

    ``path`` projects each stored value before it is compared with
    ``literal``; it is ignored in callback mode.
    """

    mode: Mode
    literal: Any = None
    callback: Callback | None = None
    path: list[str] = field(default_factory=list)


# ── AutoKey ──────────────────────────────────────────────────


@dataclass(kw_only=True)
class AutoKeyPayload(Payload):
    operation = Operation.AUTO_KEY


@dataclass(kw_only=True)
class AutoKeyResult(AutoKeyPayload):
    result: str


# ── Clear ────────────────────────────────────────────────────


@dataclass(kw_only=True)
class ClearPayload(Payload):
    operation = Operation.CLEAR


# ── Decrement / Increment / Math ─────────────────────────────


@dataclass(kw_only=True)
class DecrementPayload(KeyPathPayload):
    operation = Operation.DECREMENT


@dataclass(kw_only=True)
class IncrementPayload(KeyPathPayload):
    operation = Operation.INCREMENT


@dataclass(kw_only=True)
class MathPayload(KeyPathPayload):
    operation = Operation.MATH

    operator: MathOperator
    operand: int | float


# ── Delete ───────────────────────────────────────────────────


@dataclass(kw_only=True)
class DeletePayload(KeyPathPayload):
    operation = Operation.DELETE


# ── Ensure ───────────────────────────────────────────────────


@dataclass(kw_only=True)
class EnsurePayload(Payload):
    operation = Operation.ENSURE

    key: str
    default: Any


@dataclass(kw_only=True)
class EnsureResult(EnsurePayload):
    result: Any


# ── Every / Some ─────────────────────────────────────────────


@dataclass(kw_only=True)
class EveryPayload(SelectionPayload):
    operation = Operation.EVERY


@dataclass(kw_only=True)
class EveryResult(EveryPayload):
    result: bool


@dataclass(kw_only=True)
class SomePayload(SelectionPayload):
    operation = Operation.SOME


@dataclass(kw_only=True)
class SomeResult(SomePayload):
    result: bool


# ── Filter / Find / Partition ────────────────────────────────


@dataclass(kw_only=True)
class FilterPayload(SelectionPayload):
    operation = Operation.FILTER


@dataclass(kw_only=True)
class FilterResult(FilterPayload):
    result: dict[str, Any]


@dataclass(kw_only=True)
class FindPayload(SelectionPayload):
    operation = Operation.FIND


@dataclass(kw_only=True)
class FindResult(FindPayload):
    """``result`` is ``None`` when nothing matched."""

    result: Any = None


@dataclass(kw_only=True)
class PartitionPayload(SelectionPayload):
    operation = Operation.PARTITION


@dataclass(kw_only=True)
class PartitionResult(PartitionPayload):
    truthy: dict[str, Any]
    falsy: dict[str, Any]


# ── Get / GetAll / GetMany / Has ─────────────────────────────


@dataclass(kw_only=True)
class GetPayload(KeyPathPayload):
    operation = Operation.GET


@dataclass(kw_only=True)
class GetResult(GetPayload):
    """``result`` is ``None`` when the key or path does not exist."""

    result: Any = None


@dataclass(kw_only=True)
class GetAllPayload(Payload):
    operation = Operation.GET_ALL


@dataclass(kw_only=True)
class GetAllResult(GetAllPayload):
    result: dict[str, Any]


@dataclass(kw_only=True)
class GetManyPayload(Payload):
    operation = Operation.GET_MANY

    keys: list[str]


@dataclass(kw_only=True)
class GetManyResult(GetManyPayload):
    """Absent keys map to ``None`` rather than being omitted."""

    result: dict[str, Any]


@dataclass(kw_only=True)
class HasPayload(KeyPathPayload):
    operation = Operation.HAS


@dataclass(kw_only=True)
class HasResult(HasPayload):
    result: bool


# ── Keys / Values / Size / Random ────────────────────────────


@dataclass(kw_only=True)
class KeysPayload(Payload):
    operation = Operation.KEYS


@dataclass(kw_only=True)
class KeysResult(KeysPayload):
    result: list[str]


@dataclass(kw_only=True)
class ValuesPayload(Payload):
    operation = Operation.VALUES


@dataclass(kw_only=True)
class ValuesResult(ValuesPayload):
    result: list[Any]


@dataclass(kw_only=True)
class SizePayload(Payload):
    operation = Operation.SIZE


@dataclass(kw_only=True)
class SizeResult(SizePayload):
    result: int


@dataclass(kw_only=True)
class RandomPayload(Payload):
    operation = Operation.RANDOM


@dataclass(kw_only=True)
class RandomResult(RandomPayload):
    result: Any = None


@dataclass(kw_only=True)
class RandomKeyPayload(Payload):
    operation = Operation.RANDOM_KEY


@dataclass(kw_only=True)
class RandomKeyResult(RandomKeyPayload):
    result: str | None = None


# ── Map ──────────────────────────────────────────────────────


@dataclass(kw_only=True)
class MapPayload(Payload):
    """Project every value through ``path`` (``Mode.PATH``) or ``callback``."""

    operation = Operation.MAP

    mode: Mode
    path: list[str] = field(default_factory=list)
    callback: Callback | None = None


@dataclass(kw_only=True)
class MapResult(MapPayload):
    result: list[Any]


# ── Push / Remove / Set / SetMany / Update ───────────────────


@dataclass(kw_only=True)
class PushPayload(KeyPathPayload):
    operation = Operation.PUSH

    value: Any


@dataclass(kw_only=True)
class RemovePayload(KeyPathPayload):
    """Remove elements from the list at ``key``/``path``."""

    operation = Operation.REMOVE

    mode: Mode
    literal: Any = None
    callback: Callback | None = None


@dataclass(kw_only=True)
class SetPayload(KeyPathPayload):
    operation = Operation.SET

    value: Any


@dataclass(kw_only=True)
class SetManyPayload(Payload):
    operation = Operation.SET_MANY

    entries: list[tuple[str, Any]]


@dataclass(kw_only=True)
class UpdatePayload(KeyPathPayload):
    operation = Operation.UPDATE

    mode: Mode
    literal: Any = None
    callback: Callback | None = None


@dataclass(kw_only=True)
class UpdateResult(UpdatePayload):
    """``result`` is the stored value after the update, ``None`` if the data was missing."""

    result: Any = None
