"""Tests for path addressing helpers."""

import pytest

from kv_manager import paths


def test_parse_none_is_empty():
    assert paths.parse(None) == []


def test_parse_dotted_string():
    assert paths.parse("a.b.0") == ["a", "b", "0"]


def test_parse_sequence_stringifies_segments():
    assert paths.parse(["a", 1]) == ["a", "1"]


def test_read_nested_dict_and_list():
    value = {"a": {"b": [10, {"c": "deep"}]}}
    assert paths.read(value, ["a", "b", "0"]) == 10
    assert paths.read(value, ["a", "b", "1", "c"]) == "deep"


def test_read_empty_path_returns_whole_value():
    value = {"a": 1}
    assert paths.read(value, []) is value


def test_read_missing_returns_default():
    value = {"a": [1]}
    assert paths.read(value, ["x"]) is None
    assert paths.read(value, ["a", "5"], "fallback") == "fallback"
    assert paths.read(value, ["a", "0", "deeper"], "fallback") == "fallback"


def test_read_rejects_negative_and_non_numeric_list_index():
    assert paths.read([1, 2], ["-1"], "nope") == "nope"
    assert paths.read([1, 2], ["first"], "nope") == "nope"


def test_exists():
    value = {"a": {"b": None}}
    assert paths.exists(value, ["a", "b"])
    assert paths.exists(value, [])
    assert not paths.exists(value, ["a", "c"])


def test_write_creates_intermediate_dicts():
    assert paths.write(None, ["a", "b"], 1) == {"a": {"b": 1}}


def test_write_does_not_mutate_input():
    original = {"a": {"b": 1}, "keep": [1]}
    updated = paths.write(original, ["a", "b"], 2)
    assert updated == {"a": {"b": 2}, "keep": [1]}
    assert original == {"a": {"b": 1}, "keep": [1]}


def test_write_replaces_non_container_intermediate():
    assert paths.write({"a": 5}, ["a", "b"], 1) == {"a": {"b": 1}}


def test_write_list_index_and_append():
    assert paths.write([1, 2], ["0"], 9) == [9, 2]
    assert paths.write([1, 2], ["2"], 3) == [1, 2, 3]


@pytest.mark.parametrize("segment", ["5", "-1", "name"])
def test_write_invalid_list_index_raises(segment):
    original = {"l": [1, 2]}
    with pytest.raises(IndexError):
        paths.write(original, ["l", segment], "x")
    assert original == {"l": [1, 2]}


def test_write_empty_path_returns_new_value():
    assert paths.write({"a": 1}, [], "replaced") == "replaced"


def test_remove_leaf():
    original = {"a": {"b": 1, "c": 2}}
    assert paths.remove(original, ["a", "b"]) == {"a": {"c": 2}}
    assert original == {"a": {"b": 1, "c": 2}}


def test_remove_list_element():
    assert paths.remove({"items": ["x", "y", "z"]}, ["items", "1"]) == {"items": ["x", "z"]}


def test_remove_empty_path_raises():
    with pytest.raises(ValueError):
        paths.remove({"a": 1}, [])


def test_remove_missing_raises():
    with pytest.raises(KeyError):
        paths.remove({"a": 1}, ["b"])


def test_render():
    assert paths.render("user", ["profile", "age"]) == "user.profile.age"
    assert paths.render("user", []) == "user"
