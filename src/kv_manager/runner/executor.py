# Copyright (c) 2024 OpenMined
# SPDX-License-Identifier: Apache-2.0
"""Executor for running a declared list of operations through a KVManager.

Orchestrates the full execution flow:
1. Create provider from configuration
2. Create middleware from configuration
3. Build and initialise the KVManager
4. Run each operation through the facade, capturing its outcome
5. Return structured result
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from kv_manager import KVManager
from kv_manager.exceptions import KVError
from kv_manager.operation import Operation
from kv_manager.providers import MemoryProvider, Provider

from .factory import MiddlewareFactory, MiddlewareFactoryError
from .schema import (
    OperationResultSchema,
    OperationSchema,
    ProviderConfigSchema,
    RunnerInput,
    RunnerOutput,
)

logger = logging.getLogger(__name__)

OperationRunner = Callable[..., Awaitable[Any]]

OPERATIONS: dict[Operation, OperationRunner] = {
    Operation.AUTO_KEY: KVManager.auto_key,
    Operation.CLEAR: KVManager.clear,
    Operation.DECREMENT: KVManager.decrement,
    Operation.DELETE: KVManager.delete,
    Operation.ENSURE: KVManager.ensure,
    Operation.EVERY: KVManager.every,
    Operation.FILTER: KVManager.filter,
    Operation.FIND: KVManager.find,
    Operation.GET: KVManager.get,
    Operation.GET_ALL: KVManager.get_all,
    Operation.GET_MANY: KVManager.get_many,
    Operation.HAS: KVManager.has,
    Operation.INCREMENT: KVManager.increment,
    Operation.KEYS: KVManager.keys,
    Operation.MAP: KVManager.map,
    Operation.MATH: KVManager.math,
    Operation.PARTITION: KVManager.partition,
    Operation.PUSH: KVManager.push,
    Operation.RANDOM: KVManager.random,
    Operation.RANDOM_KEY: KVManager.random_key,
    Operation.REMOVE: KVManager.remove,
    Operation.SET: KVManager.set,
    Operation.SET_MANY: KVManager.set_many,
    Operation.SIZE: KVManager.size,
    Operation.SOME: KVManager.some,
    Operation.UPDATE: KVManager.update,
    Operation.VALUES: KVManager.values,
}


class ExecutionError(Exception):
    """Raised when execution cannot start."""

    pass


class Executor:
    """Executes declared operations against a configured KVManager.

    Responsibilities:
    - Create provider from configuration
    - Build KVManager with middleware
    - Run operations in order, converting failures into per-operation results

    Pass a provider to the constructor to override provider creation.  An
    injected provider is never closed by the executor.

    Example:
        executor = Executor()
        output = await executor.execute(input_data)

        # For testing with a shared provider:
        executor = Executor(provider=MemoryProvider())
    """

    def __init__(self, provider: Provider | None = None) -> None:
        self._injected_provider = provider

    async def execute(self, input_data: RunnerInput) -> RunnerOutput:
        """Run the whole document.

        Setup failures become a top-level error; failures of individual
        operations are reported in ``results`` instead.  Valid output is
        always returned.
        """
        try:
            return await self._execute_internal(input_data)
        except MiddlewareFactoryError as e:
            return RunnerOutput(success=False, error=str(e), error_type="MiddlewareFactoryError")
        except ExecutionError as e:
            return RunnerOutput(success=False, error=str(e), error_type="ExecutionError")
        except KVError as e:
            return RunnerOutput(success=False, error=str(e), error_type=type(e).__name__)
        except Exception as e:
            return RunnerOutput(success=False, error=str(e), error_type=type(e).__name__)

    async def _execute_internal(self, input_data: RunnerInput) -> RunnerOutput:
        provider = self._injected_provider or self._create_provider(input_data.provider)
        owns_provider = self._injected_provider is None

        middlewares = MiddlewareFactory().create_all(input_data.middlewares)
        manager = KVManager(
            name=input_data.name,
            provider=provider,
            middlewares=middlewares,
            bulk=input_data.bulk,
        )

        try:
            await manager.init()

            results: list[OperationResultSchema] = []
            for op in input_data.operations:
                outcome = await self._run_operation(manager, op)
                results.append(outcome)
                if not outcome.success and input_data.stop_on_error:
                    logger.debug("Stopping after failed %s", op.operation.value)
                    break

            return RunnerOutput(
                success=all(outcome.success for outcome in results),
                results=results,
                middlewares=manager.list_middlewares(),
            )
        finally:
            if owns_provider:
                await manager.close()

    def _create_provider(self, config: ProviderConfigSchema) -> Provider:
        if config.type == "sqlite":
            if not config.path:
                raise ExecutionError("SQLite provider requires 'path' configuration")
            from kv_manager.providers.sqlite import SQLiteProvider

            return SQLiteProvider(config.path)
        return MemoryProvider()

    async def _run_operation(self, manager: KVManager, op: OperationSchema) -> OperationResultSchema:
        try:
            value = await OPERATIONS[op.operation](manager, **op.args)
        except KVError as e:
            return OperationResultSchema(
                operation=op.operation,
                success=False,
                error=e.message,
                error_type=type(e).__name__,
                identifier=e.identifier.value,
            )
        except TypeError as e:
            return OperationResultSchema(
                operation=op.operation,
                success=False,
                error=f"Invalid arguments for '{op.operation.value}': {e}",
                error_type="TypeError",
            )
        return OperationResultSchema(
            operation=op.operation,
            success=True,
            result=_jsonable(value, manager),
        )


def _jsonable(value: Any, manager: KVManager) -> Any:
    if value is manager:
        return None
    if isinstance(value, tuple):
        return list(value)
    return value
