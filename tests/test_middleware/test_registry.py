"""Tests for MiddlewareRegistry matching and ordering."""

import pytest

from kv_manager.exceptions import ErrorIdentifier, KVError
from kv_manager.middleware import Condition, Middleware, MiddlewareRegistry
from kv_manager.operation import Operation, Phase


class Stub(Middleware):
    def __init__(self, name, position=None, operations=(Operation.GET,), phase=Phase.PRE_PROVIDER):
        self._name = name
        self.position = position
        self.conditions = (Condition.of(operations, phase),)

    @property
    def name(self):
        return self._name


@pytest.fixture
def registry():
    return MiddlewareRegistry()


def names(middlewares):
    return [m.name for m in middlewares]


def test_positioned_first_then_registration_order(registry):
    registry.register(Stub("c"))
    registry.register(Stub("b", position=5))
    registry.register(Stub("a", position=0))
    assert names(registry.match(Operation.GET, Phase.PRE_PROVIDER)) == ["a", "b", "c"]


def test_equal_positions_keep_registration_order(registry):
    registry.register(Stub("second", position=1))
    registry.register(Stub("first", position=1))
    registry.register(Stub("zero", position=0))
    assert names(registry.match(Operation.GET, Phase.PRE_PROVIDER)) == ["zero", "second", "first"]


def test_match_filters_by_operation_and_phase(registry):
    registry.register(Stub("get-pre"))
    registry.register(Stub("get-post", phase=Phase.POST_PROVIDER))
    registry.register(Stub("set-pre", operations=(Operation.SET,)))

    assert names(registry.match(Operation.GET, Phase.PRE_PROVIDER)) == ["get-pre"]
    assert names(registry.match(Operation.GET, Phase.POST_PROVIDER)) == ["get-post"]
    assert names(registry.match(Operation.SET, Phase.PRE_PROVIDER)) == ["set-pre"]
    assert registry.match(Operation.HAS, Phase.PRE_PROVIDER) == []


def test_disabled_middleware_is_not_matched(registry):
    registry.register(Stub("a"))
    registry.disable("a")
    assert registry.match(Operation.GET, Phase.PRE_PROVIDER) == []

    registry.enable("a")
    assert names(registry.match(Operation.GET, Phase.PRE_PROVIDER)) == ["a"]


def test_duplicate_name_rejected(registry):
    registry.register(Stub("a"))
    with pytest.raises(KVError) as exc_info:
        registry.register(Stub("a"))
    assert exc_info.value.identifier is ErrorIdentifier.DUPLICATE_MIDDLEWARE


def test_unknown_name_rejected(registry):
    with pytest.raises(KVError) as exc_info:
        registry.disable("ghost")
    assert exc_info.value.identifier is ErrorIdentifier.MIDDLEWARE_NOT_FOUND


def test_introspection(registry):
    stub = Stub("a", position=2)
    registry.register(stub)
    registry.register(Stub("b"))

    assert registry.get("a") is stub
    assert registry.get("zzz") is None
    assert registry.names() == ["a", "b"]
    assert len(registry) == 2
    assert "a" in registry

    exported = registry.export()
    assert exported[0]["name"] == "a"
    assert exported[0]["position"] == 2
    assert exported[0]["conditions"] == [{"operations": ["get"], "phase": "pre_provider"}]


def test_condition_accepts_plain_strings():
    condition = Condition.of(["get", "set"], "pre_provider")
    assert condition.matches(Operation.GET, Phase.PRE_PROVIDER)
    assert not condition.matches(Operation.GET, Phase.POST_PROVIDER)
    assert not condition.matches(Operation.HAS, Phase.PRE_PROVIDER)
