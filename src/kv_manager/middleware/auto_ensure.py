"""AutoEnsureMiddleware — materialise a default value for keys that do not exist yet."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from kv_manager import paths
from kv_manager.middleware.base import Condition, Middleware
from kv_manager.operation import Operation, Phase
from kv_manager.payloads import (
    DecrementPayload,
    EnsurePayload,
    GetManyPayload,
    GetManyResult,
    GetPayload,
    GetResult,
    IncrementPayload,
    MathPayload,
    Payload,
    PushPayload,
    SetManyPayload,
    SetPayload,
    UpdatePayload,
)


class AutoEnsureMiddleware(Middleware):
    """Ensures a key holds ``default_value`` before writes and backfills it on read misses.

    * Pre-provider, for writes (set, set_many, push, increment, decrement,
      math, update): each key is created with the default if absent, so the write
      lands on the default rather than failing with missing data.
    * Post-provider, for reads (get, get_many): a missing result is
      replaced by the default, which is also persisted.

    Runs at ``position=0`` so that it precedes ad-hoc middleware.

    Parameters:
        default_value: Value stored for keys that do not exist.  Copied on
                       every use, so mutable defaults are safe.
        name:          Unique middleware name.
        enabled:       Whether the registry matches it initially.
    """

    _middleware_type = "auto_ensure"
    _middleware_description = "Creates missing keys with a default value"

    def __init__(
        self,
        *,
        default_value: Any,
        name: str = "auto_ensure",
        position: int | None = 0,
        enabled: bool = True,
    ) -> None:
        self._name = name
        self.default_value = default_value
        self.position = position
        self.enabled = enabled
        self.conditions = (
            Condition.of(
                [
                    Operation.DECREMENT,
                    Operation.INCREMENT,
                    Operation.MATH,
                    Operation.PUSH,
                    Operation.SET,
                    Operation.SET_MANY,
                    Operation.UPDATE,
                ],
                Phase.PRE_PROVIDER,
            ),
            Condition.of([Operation.GET, Operation.GET_MANY], Phase.POST_PROVIDER),
        )

    @property
    def name(self) -> str:
        return self._name

    def export(self) -> dict[str, Any]:
        data = super().export()
        data["config"] = {"default_value": self.default_value}
        return data

    async def _ensure(self, payload: Payload, key: str) -> Any:
        ensured = await self.provider.ensure(EnsurePayload(key=key, default=deepcopy(self.default_value)))
        if ensured.error is not None:
            payload.error = ensured.error
            return None
        return getattr(ensured, "result", None)

    async def _ensure_key(self, payload: Any) -> Any:
        await self._ensure(payload, payload.key)
        return payload

    # ── writes (pre-provider) ────────────────────────────────

    async def decrement(self, payload: DecrementPayload) -> DecrementPayload:
        return await self._ensure_key(payload)

    async def increment(self, payload: IncrementPayload) -> IncrementPayload:
        return await self._ensure_key(payload)

    async def math(self, payload: MathPayload) -> MathPayload:
        return await self._ensure_key(payload)

    async def push(self, payload: PushPayload) -> PushPayload:
        return await self._ensure_key(payload)

    async def set(self, payload: SetPayload) -> SetPayload:
        return await self._ensure_key(payload)

    async def set_many(self, payload: SetManyPayload) -> SetManyPayload:
        for key, _ in payload.entries:
            await self._ensure(payload, key)
            if payload.error is not None:
                break
        return payload

    async def update(self, payload: UpdatePayload) -> UpdatePayload:
        return await self._ensure_key(payload)

    # ── reads (post-provider) ────────────────────────────────

    async def get(self, payload: GetPayload) -> GetPayload:
        if payload.error is not None or not isinstance(payload, GetResult):
            return payload
        if payload.result is not None:
            return payload

        value = await self._ensure(payload, payload.key)
        if payload.error is None:
            payload.result = paths.read(value, payload.path) if payload.path else value
        return payload

    async def get_many(self, payload: GetManyPayload) -> GetManyPayload:
        if payload.error is not None or not isinstance(payload, GetManyResult):
            return payload

        for key, value in payload.result.items():
            if value is not None:
                continue
            payload.result[key] = await self._ensure(payload, key)
            if payload.error is not None:
                break
        return payload
