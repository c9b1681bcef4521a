"""Middleware base class, registry and built-in implementations."""

from kv_manager.middleware.auto_ensure import AutoEnsureMiddleware
from kv_manager.middleware.base import MIDDLEWARE_HANDLERS, Condition, Middleware
from kv_manager.middleware.custom import CustomMiddleware
from kv_manager.middleware.logging import LoggingMiddleware
from kv_manager.middleware.registry import MiddlewareRegistry

__all__ = [
    "MIDDLEWARE_HANDLERS",
    "AutoEnsureMiddleware",
    "Condition",
    "CustomMiddleware",
    "LoggingMiddleware",
    "Middleware",
    "MiddlewareRegistry",
]
