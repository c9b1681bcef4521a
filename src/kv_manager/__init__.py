"""kv_manager — A storage-agnostic key/value layer with a middleware pipeline.

Every operation becomes a payload.  Payloads pass through pre-provider
middleware, the provider, then post-provider middleware.  An error set
at any stage skips the provider and is raised once the post pass ends.
"""

from kv_manager.exceptions import (
    CallerError,
    ErrorIdentifier,
    KVError,
    MiddlewareConfigError,
    ProviderError,
)
from kv_manager.manager import KVManager
from kv_manager.middleware import (
    AutoEnsureMiddleware,
    Condition,
    CustomMiddleware,
    LoggingMiddleware,
    Middleware,
    MiddlewareRegistry,
)
from kv_manager.operation import Bulk, MathOperator, Mode, Operation, Phase
from kv_manager.providers import MemoryProvider, Provider, ProviderContext

__all__ = [
    "AutoEnsureMiddleware",
    "Bulk",
    "CallerError",
    "Condition",
    "CustomMiddleware",
    "ErrorIdentifier",
    "KVError",
    "KVManager",
    "LoggingMiddleware",
    "MathOperator",
    "MemoryProvider",
    "Middleware",
    "MiddlewareConfigError",
    "MiddlewareRegistry",
    "Mode",
    "Operation",
    "Phase",
    "Provider",
    "ProviderContext",
    "ProviderError",
]
