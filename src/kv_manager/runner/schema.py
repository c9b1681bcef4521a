# Copyright (c) 2024 OpenMined
# SPDX-License-Identifier: Apache-2.0
"""Data transfer objects for runner input/output.

These Pydantic models define the JSON document the runner reads from
stdin and the one it writes to stdout.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from kv_manager.operation import Bulk, Operation


class MiddlewareConfigSchema(BaseModel):
    """Single middleware configuration.

    Attributes:
        name: Unique identifier for this middleware instance
        type: Middleware type (e.g., "auto_ensure", "logging")
        config: Type-specific keyword arguments
    """

    name: str
    type: str
    config: dict[str, Any] = Field(default_factory=dict)


class ProviderConfigSchema(BaseModel):
    """Provider configuration.

    Attributes:
        type: Provider type ("memory" or "sqlite")
        path: Path to SQLite database file (for sqlite type)
    """

    type: Literal["memory", "sqlite"] = "memory"
    path: str = ""


class OperationSchema(BaseModel):
    """One facade call.

    Attributes:
        operation: Operation to run (e.g., "set", "get", "increment")
        args: Keyword arguments for the facade method.  Only literal values
              are expressible in JSON, so callback modes are unavailable.
    """

    operation: Operation
    args: dict[str, Any] = Field(default_factory=dict)


class RunnerInput(BaseModel):
    """Complete input document read from stdin.

    Attributes:
        name: Collection name handed to the provider
        provider: Provider configuration
        middlewares: Middleware to register, in order
        operations: Facade calls to run, in order
        bulk: Default output shape for multi-entry results
        stop_on_error: Stop at the first failed operation
        log_level: Level for the stderr log handler
    """

    name: str
    provider: ProviderConfigSchema = Field(default_factory=ProviderConfigSchema)
    middlewares: list[MiddlewareConfigSchema] = Field(default_factory=list)
    operations: list[OperationSchema] = Field(default_factory=list)
    bulk: Bulk = Bulk.OBJECT
    stop_on_error: bool = False
    log_level: str = "WARNING"


class OperationResultSchema(BaseModel):
    """Outcome of a single facade call.

    Attributes:
        operation: Operation that ran
        success: Whether the call completed without error
        result: Unwrapped return value (``None`` for mutators)
        error: Error message (on failure)
        error_type: Error class name (on failure)
        identifier: Stable error identifier, when the error carries one
    """

    operation: Operation
    success: bool
    result: Any = None
    error: str = ""
    error_type: str = ""
    identifier: str | None = None


class RunnerOutput(BaseModel):
    """Complete output written to stdout.

    The runner always outputs valid JSON matching this schema, even on
    errors.

    Attributes:
        success: Whether every operation completed successfully
        results: Per-operation outcomes, in input order
        middlewares: Names of the registered middleware
        error: Error message (on setup failure)
        error_type: Error class name (on setup failure)
    """

    success: bool
    results: list[OperationResultSchema] = Field(default_factory=list)
    middlewares: list[str] = Field(default_factory=list)
    error: str = ""
    error_type: str = ""
