"""Tests for the exception hierarchy."""

from kv_manager.exceptions import (
    CallerError,
    ErrorIdentifier,
    KVError,
    MiddlewareConfigError,
    ProviderError,
)
from kv_manager.operation import Operation


def test_identifiers_are_strings():
    assert ErrorIdentifier.MISSING_DATA == "missing_data"
    assert ErrorIdentifier("invalid_type") is ErrorIdentifier.INVALID_TYPE


def test_kv_error_attributes():
    error = KVError(ErrorIdentifier.INVALID_KEY, "bad key", operation=Operation.GET)
    assert error.identifier is ErrorIdentifier.INVALID_KEY
    assert error.operation is Operation.GET
    assert error.message == "bad key"
    assert str(error) == "bad key"


def test_caller_error_is_kv_error():
    error = CallerError(ErrorIdentifier.MISSING_VALUE, "required")
    assert isinstance(error, KVError)
    assert error.operation is None


def test_provider_error_str_includes_operation_and_identifier():
    error = ProviderError(ErrorIdentifier.MISSING_DATA, "gone", operation=Operation.PUSH)
    assert str(error) == "[push:missing_data] gone"


def test_middleware_config_error():
    error = MiddlewareConfigError("audit", "phase must be pre")
    assert error.middleware_name == "audit"
    assert error.identifier is ErrorIdentifier.INVALID_VALUE
    assert "audit" in str(error)
