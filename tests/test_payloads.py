"""Tests for the payload model."""

from kv_manager.operation import Mode, Operation, Phase
from kv_manager.payloads import (
    FilterPayload,
    FilterResult,
    GetPayload,
    GetResult,
    SetPayload,
)


def test_defaults():
    payload = GetPayload(key="a")
    assert payload.phase is Phase.UNSET
    assert payload.error is None
    assert payload.path == []
    assert payload.metadata == {}


def test_operation_is_class_level():
    assert GetPayload.operation is Operation.GET
    assert GetResult.operation is Operation.GET
    assert SetPayload(key="a", value=1).operation is Operation.SET


def test_request_payload_has_no_result():
    assert not hasattr(GetPayload(key="a"), "result")


def test_resolve_carries_fields_and_adds_result():
    request = GetPayload(key="a", path=["x"], phase=Phase.PRE_PROVIDER, metadata={"seen": True})
    result = request.resolve(GetResult, result=5)

    assert isinstance(result, GetResult)
    assert isinstance(result, GetPayload)
    assert result.key == "a"
    assert result.path == ["x"]
    assert result.phase is Phase.PRE_PROVIDER
    assert result.metadata is request.metadata
    assert result.result == 5


def test_resolve_keeps_selector_fields():
    def callback(value):
        return value > 1

    request = FilterPayload(mode=Mode.CALLBACK, callback=callback)
    result = request.resolve(FilterResult, result={})
    assert result.mode is Mode.CALLBACK
    assert result.callback is callback
