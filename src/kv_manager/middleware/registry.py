"""MiddlewareRegistry — holds middleware and answers which ones run, and in what order."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kv_manager.exceptions import ErrorIdentifier, KVError

if TYPE_CHECKING:
    from kv_manager.middleware.base import Middleware
    from kv_manager.operation import Operation, Phase

logger = logging.getLogger(__name__)


class MiddlewareRegistry:
    """Registration-ordered collection of middleware, keyed by name.

    :meth:`match` returns the enabled middleware for an (operation, phase)
    pair: those with an explicit ``position`` first, ascending, followed by
    the unpositioned ones in registration order.
    """

    def __init__(self) -> None:
        self._middlewares: dict[str, Middleware] = {}

    # ── registration ─────────────────────────────────────────

    def register(self, middleware: Middleware) -> None:
        if middleware.name in self._middlewares:
            raise KVError(
                ErrorIdentifier.DUPLICATE_MIDDLEWARE,
                f'A middleware named "{middleware.name}" is already registered.',
            )
        self._middlewares[middleware.name] = middleware
        logger.debug("Registered middleware '%s' (position=%s)", middleware.name, middleware.position)

    def enable(self, name: str) -> Middleware:
        middleware = self._require(name)
        middleware.enabled = True
        return middleware

    def disable(self, name: str) -> Middleware:
        middleware = self._require(name)
        middleware.enabled = False
        return middleware

    # ── matching ─────────────────────────────────────────────

    def match(self, operation: Operation, phase: Phase) -> list[Middleware]:
        matched = [
            middleware
            for middleware in self._middlewares.values()
            if middleware.enabled and middleware.applies_to(operation, phase)
        ]
        positioned = sorted(
            (middleware for middleware in matched if middleware.position is not None),
            key=lambda middleware: middleware.position,  # type: ignore[arg-type,return-value]
        )
        unpositioned = [middleware for middleware in matched if middleware.position is None]
        return positioned + unpositioned

    # ── introspection ────────────────────────────────────────

    def get(self, name: str) -> Middleware | None:
        """Look up a registered middleware by its ``name``."""
        return self._middlewares.get(name)

    def names(self) -> list[str]:
        """Return the names of all registered middleware in registration order."""
        return list(self._middlewares)

    def export(self) -> list[dict[str, Any]]:
        return [middleware.export() for middleware in self._middlewares.values()]

    def __len__(self) -> int:
        return len(self._middlewares)

    def __contains__(self, name: object) -> bool:
        return name in self._middlewares

    def _require(self, name: str) -> Middleware:
        middleware = self._middlewares.get(name)
        if middleware is None:
            raise KVError(
                ErrorIdentifier.MIDDLEWARE_NOT_FOUND,
                f'The middleware "{name}" does not exist.',
            )
        return middleware
