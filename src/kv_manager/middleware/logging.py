"""LoggingMiddleware — log every operation with its outcome and duration."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from kv_manager._internal.clock import Clock, SystemClock
from kv_manager.exceptions import MiddlewareConfigError
from kv_manager.middleware.base import Condition, Middleware
from kv_manager.operation import Operation, Phase
from kv_manager.payloads import Payload

logger = logging.getLogger(__name__)


class LoggingMiddleware(Middleware):
    """Times each call between the pre and post passes and logs the result.

    Successful calls are logged at ``level``; failed calls at ``WARNING``
    together with the error identifier.  The start time travels in
    ``payload.metadata`` so concurrent calls never share state.

    Parameters:
        name:       Unique middleware name.
        operations: Operations to log.  Defaults to all of them.
        level:      Log level for successful calls.
        clock:      Injectable clock for testing.
    """

    _middleware_type = "logging"
    _middleware_description = "Logs each operation with its duration and outcome"

    def __init__(
        self,
        *,
        name: str = "logging",
        operations: Iterable[Operation | str] | None = None,
        level: int | str = logging.INFO,
        position: int | None = None,
        enabled: bool = True,
        clock: Clock | None = None,
    ) -> None:
        watched = frozenset(Operation) if operations is None else frozenset(Operation(op) for op in operations)
        self._name = name
        self.level = _level(name, level)
        self.position = position
        self.enabled = enabled
        self.conditions = (
            Condition(operations=watched, phase=Phase.PRE_PROVIDER),
            Condition(operations=watched, phase=Phase.POST_PROVIDER),
        )
        self._clock = clock or SystemClock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def _started_key(self) -> str:
        return f"{self._name}:started"

    def export(self) -> dict[str, Any]:
        data = super().export()
        data["config"] = {"level": logging.getLevelName(self.level)}
        return data

    async def run(self, payload: Payload) -> Payload:
        if payload.phase is Phase.PRE_PROVIDER:
            payload.metadata[self._started_key] = self._clock.monotonic()
            return payload

        started = payload.metadata.get(self._started_key)
        elapsed_ms = (self._clock.monotonic() - started) * 1000 if started is not None else 0.0
        operation = payload.operation.value
        if payload.error is not None:
            identifier = getattr(payload.error, "identifier", None)
            logger.warning(
                "%s failed after %.3fms: %s",
                operation,
                elapsed_ms,
                identifier.value if identifier is not None else type(payload.error).__name__,
            )
        else:
            logger.log(self.level, "%s completed in %.3fms", operation, elapsed_ms)
        return payload


def _level(name: str, level: int | str) -> int:
    if isinstance(level, int):
        return level
    levels = logging.getLevelNamesMapping()
    if level.upper() not in levels:
        raise MiddlewareConfigError(name, f"unknown log level '{level}'")
    return levels[level.upper()]
