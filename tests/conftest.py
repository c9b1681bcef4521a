"""Shared test fixtures."""

import random

import pytest

from kv_manager import KVManager
from kv_manager.providers import MemoryProvider


@pytest.fixture
def provider():
    return MemoryProvider(rng=random.Random(7))


@pytest.fixture
async def kv(provider):
    manager = KVManager(name="test", provider=provider)
    await manager.init()
    yield manager
    await manager.close()


class FakeClock:
    """Deterministic clock advanced by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
