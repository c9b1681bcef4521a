"""Helpers for user callbacks that may be sync or async."""

from __future__ import annotations

import asyncio
from typing import Any

from kv_manager.payloads import Callback


async def invoke(callback: Callback, value: Any) -> Any:
    """Call *callback* with *value*, awaiting the result if it is a coroutine."""
    result = callback(value)
    if asyncio.iscoroutine(result):
        result = await result
    return result


def is_primitive(value: Any) -> bool:
    """Literals compared by search operations must be str, int, float or bool."""
    return isinstance(value, (str, int, float, bool))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def literal_matches(literal: Any, value: Any) -> bool:
    """Exact equality: ``True`` does not match ``1``."""
    if isinstance(literal, bool) or isinstance(value, bool):
        return isinstance(literal, bool) and isinstance(value, bool) and literal is value
    return bool(literal == value)
