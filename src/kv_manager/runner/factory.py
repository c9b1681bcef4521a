# Copyright (c) 2024 OpenMined
# SPDX-License-Identifier: Apache-2.0
"""Middleware factory for creating middleware instances from configuration.

Uses the Registry pattern to map type strings to middleware classes,
allowing extensibility without modifying factory code.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from kv_manager.middleware import AutoEnsureMiddleware, LoggingMiddleware, Middleware

from .schema import MiddlewareConfigSchema

logger = logging.getLogger(__name__)


class MiddlewareFactoryError(Exception):
    """Raised when middleware creation fails."""

    pass


class MiddlewareFactory:
    """Creates middleware instances from configuration.

    Middleware types are registered at class level and can be extended
    via the `register` class method.  ``custom`` middleware wraps a Python
    callable and so cannot be declared in JSON.

    Example:
        factory = MiddlewareFactory()
        configs = [
            MiddlewareConfigSchema(name="defaults", type="auto_ensure", config={"default_value": 0}),
            MiddlewareConfigSchema(name="log", type="logging", config={"level": "DEBUG"}),
        ]
        middlewares = factory.create_all(configs)
    """

    # Class-level registry mapping type strings to middleware classes
    _registry: ClassVar[dict[str, type[Middleware]]] = {
        "auto_ensure": AutoEnsureMiddleware,
        "logging": LoggingMiddleware,
    }

    def __init__(self) -> None:
        self._instances: dict[str, Middleware] = {}

    @classmethod
    def register(cls, type_name: str, middleware_class: type[Middleware]) -> None:
        """Register a custom middleware type.

        Args:
            type_name: Type string to use in configuration
            middleware_class: Middleware class to instantiate

        Raises:
            ValueError: If middleware_class._middleware_type doesn't match type_name

        Example:
            MiddlewareFactory.register("audit", AuditMiddleware)
        """
        declared_type = middleware_class._middleware_type
        if declared_type != "base" and declared_type != type_name:
            raise ValueError(
                f"Middleware {middleware_class.__name__} has _middleware_type='{declared_type}' "
                f"but is being registered as '{type_name}'"
            )
        cls._registry[type_name] = middleware_class

    @classmethod
    def registered_types(cls) -> list[str]:
        """Return list of registered middleware type names."""
        return list(cls._registry.keys())

    def create_all(self, configs: list[MiddlewareConfigSchema]) -> list[Middleware]:
        """Create all middleware from a configuration list, in order.

        Raises:
            MiddlewareFactoryError: If a type is unknown, a name repeats,
                or a constructor rejects its config
        """
        middlewares: list[Middleware] = []

        for config in configs:
            if config.name in self._instances:
                raise MiddlewareFactoryError(f"Middleware name '{config.name}' is defined more than once")
            try:
                middleware = self._create_one(config)
            except MiddlewareFactoryError:
                raise
            except Exception as e:
                raise MiddlewareFactoryError(
                    f"Failed to create middleware '{config.name}' of type '{config.type}': {e}"
                ) from e
            self._instances[config.name] = middleware
            middlewares.append(middleware)
            logger.debug("Created middleware '%s' of type '%s'", config.name, config.type)

        return middlewares

    def _create_one(self, config: MiddlewareConfigSchema) -> Middleware:
        middleware_class = self._registry.get(config.type)
        if not middleware_class:
            available = ", ".join(sorted(self.registered_types()))
            raise MiddlewareFactoryError(
                f"Unknown middleware type: '{config.type}'. Available types: {available}"
            )

        # Concrete middleware accept a name kwarg; the base class doesn't declare it
        return middleware_class(name=config.name, **config.config)  # type: ignore[call-arg]

    def get_instance(self, name: str) -> Middleware | None:
        """Get a created middleware instance by name."""
        return self._instances.get(name)
