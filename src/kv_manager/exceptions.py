"""Custom exceptions for the kv_manager package."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kv_manager.operation import Operation


class ErrorIdentifier(str, Enum):
    """Stable identifiers callers branch on.  Never branch on message text."""

    MISSING_DATA = "missing_data"
    INVALID_TYPE = "invalid_type"
    INVALID_VALUE = "invalid_value"
    MISSING_VALUE = "missing_value"
    INVALID_KEY = "invalid_key"
    INVALID_PATH = "invalid_path"
    MISSING_NAME = "missing_name"
    DUPLICATE_MIDDLEWARE = "duplicate_middleware"
    MIDDLEWARE_NOT_FOUND = "middleware_not_found"
    PROVIDER_INIT_FAILED = "provider_init_failed"


class KVError(Exception):
    """Base exception for all kv_manager errors.

    Attributes:
        identifier: Stable :class:`ErrorIdentifier` for the failure kind.
        operation:  The :class:`Operation` the failure occurred under, if any.
    """

    def __init__(
        self,
        identifier: ErrorIdentifier,
        message: str,
        *,
        operation: Operation | None = None,
    ) -> None:
        self.identifier = identifier
        self.operation = operation
        self.message = message
        super().__init__(message)


class CallerError(KVError):
    """Raised before dispatch when the caller passed missing or invalid arguments."""


class ProviderError(KVError):
    """Attached to ``payload.error`` by a provider when an operation fails."""

    def __init__(self, identifier: ErrorIdentifier, message: str, *, operation: Operation) -> None:
        super().__init__(identifier, message, operation=operation)

    def __str__(self) -> str:
        return f"[{self.operation.value}:{self.identifier.value}] {self.message}"


class MiddlewareConfigError(KVError):
    """Raised when a middleware is declared incorrectly."""

    def __init__(self, middleware_name: str, message: str) -> None:
        self.middleware_name = middleware_name
        super().__init__(
            ErrorIdentifier.INVALID_VALUE,
            f"Middleware '{middleware_name}' misconfigured: {message}",
        )
