# Copyright (c) 2024 OpenMined
# SPDX-License-Identifier: Apache-2.0
"""Runner submodule for executing declared operations from JSON.

Usage:
    python -m kv_manager.runner < input.json > output.json

Exports:
    Executor: Runs a RunnerInput through a configured KVManager
    MiddlewareFactory: Creates middleware instances from configuration
    RunnerInput: Input schema
    RunnerOutput: Output schema
"""

from .executor import ExecutionError, Executor
from .factory import MiddlewareFactory, MiddlewareFactoryError
from .schema import (
    MiddlewareConfigSchema,
    OperationResultSchema,
    OperationSchema,
    ProviderConfigSchema,
    RunnerInput,
    RunnerOutput,
)

__all__ = [
    "ExecutionError",
    "Executor",
    "MiddlewareConfigSchema",
    "MiddlewareFactory",
    "MiddlewareFactoryError",
    "OperationResultSchema",
    "OperationSchema",
    "ProviderConfigSchema",
    "RunnerInput",
    "RunnerOutput",
]
