"""CustomMiddleware — wrap any callable as a middleware without subclassing."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

from kv_manager.exceptions import MiddlewareConfigError
from kv_manager.middleware.base import Condition, Middleware
from kv_manager.operation import Operation, Phase
from kv_manager.payloads import Payload

# The hook callable can be sync or async.
# It receives the payload and returns it, or ``None`` after mutating it in place.
HookFn = Callable[[Payload], Any]

_PHASES: dict[str, tuple[Phase, ...]] = {
    "pre": (Phase.PRE_PROVIDER,),
    "post": (Phase.POST_PROVIDER,),
    "both": (Phase.PRE_PROVIDER, Phase.POST_PROVIDER),
}


class CustomMiddleware(Middleware):
    """Wraps a plain callable as a middleware — no subclassing required.

    Parameters:
        name:       Unique middleware name.
        operations: Operations the hook runs for.
        phase:      ``"pre"``, ``"post"``, or ``"both"``.
        hook:       Callable ``(payload) -> payload | None``.  May be sync or async.
        position:   Optional explicit ordering slot.
    """

    _middleware_type = "custom"
    _middleware_description = "Custom callable-based middleware"

    def __init__(
        self,
        *,
        name: str,
        operations: Iterable[Operation | str],
        phase: str = "pre",
        hook: HookFn,
        position: int | None = None,
        enabled: bool = True,
    ) -> None:
        if phase not in _PHASES:
            raise MiddlewareConfigError(name, f"phase must be one of {sorted(_PHASES)}, got '{phase}'")
        watched = frozenset(Operation(op) for op in operations)
        if not watched:
            raise MiddlewareConfigError(name, "at least one operation is required")

        self._name = name
        self._phase = phase
        self._hook = hook
        self.position = position
        self.enabled = enabled
        self.conditions = tuple(Condition(operations=watched, phase=p) for p in _PHASES[phase])

    @property
    def name(self) -> str:
        return self._name

    def export(self) -> dict[str, Any]:
        data = super().export()
        data["config"] = {
            "phase": self._phase,
            "has_hook": self._hook is not None,
        }
        return data

    async def run(self, payload: Payload) -> Payload:
        result = self._hook(payload)
        if asyncio.iscoroutine(result):
            result = await result
        return payload if result is None else result
