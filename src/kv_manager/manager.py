"""KVManager — the public facade and the dispatch pipeline."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from kv_manager import paths
from kv_manager._internal.callbacks import is_number, is_primitive
from kv_manager.exceptions import CallerError, ErrorIdentifier, KVError
from kv_manager.middleware.base import Middleware
from kv_manager.middleware.registry import MiddlewareRegistry
from kv_manager.operation import Bulk, MathOperator, Mode, Operation, Phase
from kv_manager.payloads import (
    AutoKeyPayload,
    Callback,
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
from kv_manager.providers.base import PROVIDER_HANDLERS, Provider, ProviderContext
from kv_manager.providers.memory import MemoryProvider

logger = logging.getLogger(__name__)

PathLike = str | Sequence[str] | None


class KVManager:
    """Runs every operation through pre-provider middleware, the provider, then post-provider middleware.

    * The pre-provider pass stops at the first middleware that sets an error,
      and the provider is then skipped.
    * The post-provider pass always runs, so middleware can observe failures.
    * Once set, an error is never cleared: if a later stage drops or replaces
      it, the first error is put back.
    * After the post-provider pass the facade raises the error, or unwraps
      the result.

    Parameters:
        name:        Collection name handed to the provider on :meth:`init`.
        provider:    Storage backend.  Defaults to :class:`MemoryProvider`
                     when omitted.
        middlewares: Middleware registered during :meth:`init`.
        bulk:        Default output shape for multi-entry results.
    """

    def __init__(
        self,
        *,
        name: str,
        provider: Provider | None = None,
        middlewares: Iterable[Middleware] = (),
        bulk: Bulk | str = Bulk.OBJECT,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise CallerError(ErrorIdentifier.MISSING_NAME, 'The "name" option is required.')
        if provider is not None and not isinstance(provider, Provider):
            raise CallerError(
                ErrorIdentifier.INVALID_VALUE,
                f'The "provider" must be a Provider instance, got {type(provider).__name__}.',
            )

        self._name = name
        self._provider: Provider = provider or MemoryProvider()
        self._registry = MiddlewareRegistry()
        self._pending: list[Middleware] = list(middlewares)
        self._bulk = Bulk(bulk)

    # ── lifecycle ────────────────────────────────────────────

    async def init(self) -> KVManager:
        """Initialise the provider and register the constructor's middleware."""
        context = await self._provider.init(ProviderContext(name=self._name, manager=self))
        if context.error is not None:
            logger.debug("Provider %s failed to initialise: %s", type(self._provider).__name__, context.error)
            raise context.error

        pending, self._pending = self._pending, []
        for middleware in pending:
            await self.add_middleware(middleware)
        logger.debug("Initialised '%s' with %s", self._name, type(self._provider).__name__)
        return self

    async def close(self) -> None:
        await self._provider.close()
        logger.debug("Closed '%s'", self._name)

    async def __aenter__(self) -> KVManager:
        return await self.init()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── middleware registration ──────────────────────────────

    async def add_middleware(self, middleware: Middleware) -> KVManager:
        """Register *middleware* and inject this manager into it."""
        self._registry.register(middleware)
        await middleware.setup(self)
        return self

    def use(self, name: str) -> KVManager:
        """Enable the middleware registered under *name*."""
        self._registry.enable(name)
        return self

    def disable(self, name: str) -> KVManager:
        """Disable the middleware registered under *name*."""
        self._registry.disable(name)
        return self

    def get_middleware(self, name: str) -> Middleware | None:
        return self._registry.get(name)

    def list_middlewares(self) -> list[str]:
        return self._registry.names()

    def export(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the manager and its middleware."""
        middlewares = self._registry.export()
        return {
            "name": self._name,
            "provider": type(self._provider).__name__,
            "bulk": self._bulk.value,
            "middlewares": middlewares,
            "middleware_count": len(middlewares),
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def registry(self) -> MiddlewareRegistry:
        return self._registry

    # ── pipeline ─────────────────────────────────────────────

    async def _dispatch(self, payload: Payload) -> Any:
        operation = payload.operation
        first_error: KVError | None = None

        payload.phase = Phase.PRE_PROVIDER
        for middleware in self._registry.match(operation, Phase.PRE_PROVIDER):
            payload = await middleware.run(payload)
            first_error = _keep_first_error(payload, first_error)
            if first_error is not None:
                logger.debug("%s stopped before the provider by '%s'", operation.value, middleware.name)
                break

        if first_error is None:
            payload = await PROVIDER_HANDLERS[operation](self._provider, payload)
            first_error = payload.error

        payload.phase = Phase.POST_PROVIDER
        for middleware in self._registry.match(operation, Phase.POST_PROVIDER):
            payload = await middleware.run(payload)
            first_error = _keep_first_error(payload, first_error)

        if payload.error is not None:
            logger.debug("%s failed: %s", operation.value, payload.error)
            raise payload.error
        return payload

    # ── operations ───────────────────────────────────────────

    async def auto_key(self) -> str:
        """Return a fresh key from the provider's monotonic counter."""
        result = await self._dispatch(AutoKeyPayload())
        return result.result

    async def clear(self) -> KVManager:
        await self._dispatch(ClearPayload())
        return self

    async def decrement(self, key: str, path: PathLike = None) -> KVManager:
        operation = Operation.DECREMENT
        await self._dispatch(
            DecrementPayload(key=_key(key, operation), path=_path(path, operation)),
        )
        return self

    async def delete(self, key: str, path: PathLike = None) -> KVManager:
        operation = Operation.DELETE
        await self._dispatch(DeletePayload(key=_key(key, operation), path=_path(path, operation)))
        return self

    async def ensure(self, key: str, default: Any) -> Any:
        """Store *default* under *key* if it is absent; return the stored value."""
        operation = Operation.ENSURE
        payload = EnsurePayload(key=_key(key, operation), default=_value(default, "default", operation))
        result = await self._dispatch(payload)
        return result.result

    async def every(self, criterion: Any, path: PathLike = None) -> bool:
        """Whether every stored value satisfies *criterion*.  ``False`` on an empty table."""
        operation = Operation.EVERY
        mode, literal, callback = _selector(criterion, operation)
        payload = EveryPayload(mode=mode, literal=literal, callback=callback, path=_path(path, operation))
        result = await self._dispatch(payload)
        return result.result

    async def filter(self, criterion: Any, path: PathLike = None, bulk: Bulk | str | None = None) -> Any:
        operation = Operation.FILTER
        mode, literal, callback = _selector(criterion, operation)
        payload = FilterPayload(mode=mode, literal=literal, callback=callback, path=_path(path, operation))
        result = await self._dispatch(payload)
        return _shape(result.result, self._resolve_bulk(bulk))

    async def find(self, criterion: Any, path: PathLike = None) -> Any:
        """Return the first stored value satisfying *criterion*, or ``None``."""
        operation = Operation.FIND
        mode, literal, callback = _selector(criterion, operation)
        payload = FindPayload(mode=mode, literal=literal, callback=callback, path=_path(path, operation))
        result = await self._dispatch(payload)
        return result.result

    async def get(self, key: str, path: PathLike = None) -> Any:
        """Return the value at *key* / *path*, or ``None`` when it does not exist."""
        operation = Operation.GET
        result = await self._dispatch(GetPayload(key=_key(key, operation), path=_path(path, operation)))
        return result.result

    async def get_all(self, bulk: Bulk | str | None = None) -> Any:
        result = await self._dispatch(GetAllPayload())
        return _shape(result.result, self._resolve_bulk(bulk))

    async def get_many(self, keys: Iterable[str], bulk: Bulk | str | None = None) -> Any:
        """Return the values of *keys*; absent keys map to ``None``."""
        operation = Operation.GET_MANY
        if isinstance(keys, str):
            raise CallerError(
                ErrorIdentifier.INVALID_TYPE,
                'The "keys" must be an iterable of strings, not a single string.',
                operation=operation,
            )
        payload = GetManyPayload(keys=[_key(key, operation) for key in keys])
        result = await self._dispatch(payload)
        return _shape(result.result, self._resolve_bulk(bulk))

    async def has(self, key: str, path: PathLike = None) -> bool:
        operation = Operation.HAS
        result = await self._dispatch(HasPayload(key=_key(key, operation), path=_path(path, operation)))
        return result.result

    async def increment(self, key: str, path: PathLike = None) -> KVManager:
        operation = Operation.INCREMENT
        await self._dispatch(
            IncrementPayload(key=_key(key, operation), path=_path(path, operation)),
        )
        return self

    async def keys(self) -> list[str]:
        result = await self._dispatch(KeysPayload())
        return result.result

    async def map(self, path_or_callback: str | Sequence[str] | Callback) -> list[Any]:
        """Project every stored value through a path or a callback."""
        operation = Operation.MAP
        if callable(path_or_callback):
            payload = MapPayload(mode=Mode.CALLBACK, callback=path_or_callback)
        else:
            payload = MapPayload(mode=Mode.PATH, path=_path(path_or_callback, operation))
        result = await self._dispatch(payload)
        return result.result

    async def math(
        self,
        key: str,
        operator: MathOperator | str,
        operand: int | float,
        path: PathLike = None,
    ) -> KVManager:
        """Apply ``stored <operator> operand`` and store the outcome."""
        operation = Operation.MATH
        try:
            math_operator = MathOperator(operator)
        except ValueError:
            raise CallerError(
                ErrorIdentifier.INVALID_VALUE,
                f'The "operator" must be one of {[op.value for op in MathOperator]}, got {operator!r}.',
                operation=operation,
            ) from None
        if operand is None:
            raise CallerError(ErrorIdentifier.MISSING_VALUE, 'The "operand" is required.', operation=operation)
        if not is_number(operand):
            raise CallerError(ErrorIdentifier.INVALID_TYPE, 'The "operand" must be a number.', operation=operation)

        payload = MathPayload(
            key=_key(key, operation),
            path=_path(path, operation),
            operator=math_operator,
            operand=operand,
        )
        await self._dispatch(payload)
        return self

    async def partition(
        self,
        criterion: Any,
        path: PathLike = None,
        bulk: Bulk | str | None = None,
    ) -> tuple[Any, Any]:
        """Split stored entries into ``(matching, non_matching)``."""
        operation = Operation.PARTITION
        mode, literal, callback = _selector(criterion, operation)
        payload = PartitionPayload(mode=mode, literal=literal, callback=callback, path=_path(path, operation))
        result = await self._dispatch(payload)
        shape = self._resolve_bulk(bulk)
        return _shape(result.truthy, shape), _shape(result.falsy, shape)

    async def push(self, key: str, value: Any, path: PathLike = None) -> KVManager:
        """Append *value* to the list at *key* / *path*."""
        operation = Operation.PUSH
        payload = PushPayload(
            key=_key(key, operation),
            path=_path(path, operation),
            value=_value(value, "value", operation),
        )
        await self._dispatch(payload)
        return self

    async def random(self) -> Any:
        result = await self._dispatch(RandomPayload())
        return result.result

    async def random_key(self) -> str | None:
        result = await self._dispatch(RandomKeyPayload())
        return result.result

    async def remove(self, key: str, criterion: Any, path: PathLike = None) -> KVManager:
        """Remove the elements of the list at *key* / *path* that satisfy *criterion*."""
        operation = Operation.REMOVE
        mode, literal, callback = _selector(criterion, operation)
        payload = RemovePayload(
            key=_key(key, operation),
            path=_path(path, operation),
            mode=mode,
            literal=literal,
            callback=callback,
        )
        await self._dispatch(payload)
        return self

    async def set(self, key: str, value: Any, path: PathLike = None) -> KVManager:
        operation = Operation.SET
        payload = SetPayload(
            key=_key(key, operation),
            path=_path(path, operation),
            value=_value(value, "value", operation),
        )
        await self._dispatch(payload)
        return self

    async def set_many(self, entries: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> KVManager:
        """Store several whole values at once, from a mapping or ``(key, value)`` pairs."""
        operation = Operation.SET_MANY
        items = entries.items() if isinstance(entries, Mapping) else entries
        pairs = [(_key(key, operation), _value(value, "value", operation)) for key, value in items]
        await self._dispatch(SetManyPayload(entries=pairs))
        return self

    async def size(self) -> int:
        result = await self._dispatch(SizePayload())
        return result.result

    async def some(self, criterion: Any, path: PathLike = None) -> bool:
        operation = Operation.SOME
        mode, literal, callback = _selector(criterion, operation)
        payload = SomePayload(mode=mode, literal=literal, callback=callback, path=_path(path, operation))
        result = await self._dispatch(payload)
        return result.result

    async def update(self, key: str, literal_or_callback: Any, path: PathLike = None) -> Any:
        """Replace the value at *key* / *path*, or store a callback's return value.

        Returns the new value, or ``None`` (without writing) when the data
        does not exist.
        """
        operation = Operation.UPDATE
        if callable(literal_or_callback):
            mode, literal, callback = Mode.CALLBACK, None, literal_or_callback
        else:
            mode, literal, callback = Mode.LITERAL, _value(literal_or_callback, "value", operation), None
        payload = UpdatePayload(
            key=_key(key, operation),
            path=_path(path, operation),
            mode=mode,
            literal=literal,
            callback=callback,
        )
        result = await self._dispatch(payload)
        return result.result

    async def values(self) -> list[Any]:
        result = await self._dispatch(ValuesPayload())
        return result.result

    def _resolve_bulk(self, bulk: Bulk | str | None) -> Bulk:
        if bulk is None:
            return self._bulk
        try:
            return Bulk(bulk)
        except ValueError:
            raise CallerError(
                ErrorIdentifier.INVALID_VALUE,
                f'The "bulk" shape must be one of {[shape.value for shape in Bulk]}, got {bulk!r}.',
            ) from None


# ── module helpers ───────────────────────────────────────────


def _keep_first_error(payload: Payload, first_error: KVError | None) -> KVError | None:
    """Put *first_error* back on *payload* if a stage cleared or replaced it."""
    if first_error is None:
        return payload.error
    if payload.error is not first_error:
        payload.error = first_error
    return first_error


def _key(key: Any, operation: Operation) -> str:
    if not isinstance(key, str) or not key:
        raise CallerError(
            ErrorIdentifier.INVALID_KEY,
            f'The "key" must be a non-empty string, got {key!r}.',
            operation=operation,
        )
    return key


def _path(path: Any, operation: Operation) -> list[str]:
    if path is not None and not isinstance(path, (str, Sequence)):
        raise CallerError(
            ErrorIdentifier.INVALID_PATH,
            f'The "path" must be a dotted string or a sequence of segments, got {type(path).__name__}.',
            operation=operation,
        )
    segments = paths.parse(path)
    if any(not segment for segment in segments):
        raise CallerError(ErrorIdentifier.INVALID_PATH, 'The "path" contains an empty segment.', operation=operation)
    return segments


def _value(value: Any, argument: str, operation: Operation) -> Any:
    if value is None:
        raise CallerError(ErrorIdentifier.MISSING_VALUE, f'The "{argument}" is required.', operation=operation)
    return value


def _selector(criterion: Any, operation: Operation) -> tuple[Mode, Any, Callback | None]:
    """Split *criterion* into ``(mode, literal, callback)``."""
    if callable(criterion):
        return Mode.CALLBACK, None, criterion
    if criterion is None:
        raise CallerError(
            ErrorIdentifier.MISSING_VALUE,
            "A literal value or a callback is required.",
            operation=operation,
        )
    if not is_primitive(criterion):
        raise CallerError(
            ErrorIdentifier.INVALID_VALUE,
            f'The literal must be a str, int, float or bool, got {type(criterion).__name__}.',
            operation=operation,
        )
    return Mode.LITERAL, criterion, None


def _shape(data: dict[str, Any], bulk: Bulk) -> Any:
    """Reshape a canonical key -> value dict into *bulk*."""
    if bulk is Bulk.MAP:
        return OrderedDict(data)
    if bulk is Bulk.VALUES:
        return list(data.values())
    if bulk is Bulk.ENTRIES:
        return list(data.items())
    return dict(data)
