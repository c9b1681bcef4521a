"""Tests for KVManager — facade operations and the full pipeline."""

import asyncio
from collections import OrderedDict

import pytest

from kv_manager import (
    AutoEnsureMiddleware,
    Bulk,
    CallerError,
    CustomMiddleware,
    ErrorIdentifier,
    KVError,
    KVManager,
    MemoryProvider,
    ProviderError,
)
from kv_manager.operation import Operation, Phase
from kv_manager.payloads import EnsurePayload, GetResult

# ── construction and lifecycle ───────────────────────────────


def test_name_is_required():
    with pytest.raises(CallerError) as exc_info:
        KVManager(name="")
    assert exc_info.value.identifier is ErrorIdentifier.MISSING_NAME


def test_provider_must_be_a_provider():
    with pytest.raises(CallerError) as exc_info:
        KVManager(name="x", provider={})
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_VALUE


def test_defaults_to_memory_provider():
    assert isinstance(KVManager(name="x").provider, MemoryProvider)


async def test_init_passes_name_and_manager_to_provider(kv, provider):
    assert provider.name == "test"
    assert provider.manager is kv


async def test_async_context_manager():
    async with KVManager(name="ctx") as kv:
        await kv.set("a", 1)
        assert await kv.get("a") == 1


async def test_constructor_middleware_registered_on_init(provider):
    kv = KVManager(name="x", provider=provider, middlewares=[AutoEnsureMiddleware(default_value=0)])
    assert kv.list_middlewares() == []
    await kv.init()
    assert kv.list_middlewares() == ["auto_ensure"]
    assert kv.get_middleware("auto_ensure").manager is kv


async def test_use_unknown_name(kv):
    with pytest.raises(KVError) as exc_info:
        kv.use("ghost")
    assert exc_info.value.identifier is ErrorIdentifier.MIDDLEWARE_NOT_FOUND


async def test_add_duplicate_middleware(kv):
    await kv.add_middleware(AutoEnsureMiddleware(default_value=0))
    with pytest.raises(KVError) as exc_info:
        await kv.add_middleware(AutoEnsureMiddleware(default_value=1))
    assert exc_info.value.identifier is ErrorIdentifier.DUPLICATE_MIDDLEWARE


async def test_export(kv):
    await kv.add_middleware(AutoEnsureMiddleware(default_value=[]))
    exported = kv.export()
    assert exported["name"] == "test"
    assert exported["provider"] == "MemoryProvider"
    assert exported["bulk"] == "object"
    assert exported["middleware_count"] == 1
    assert exported["middlewares"][0]["type"] == "auto_ensure"


# ── scenarios ────────────────────────────────────────────────


async def test_set_increment_delete_scenario(kv):
    await kv.set("a", 1)
    await kv.increment("a")
    assert await kv.get("a") == 2
    await kv.delete("a")
    assert not await kv.has("a")


async def test_nested_delete_scenario(kv):
    await kv.set("u", {"nested": 5})
    assert await kv.get("u", ["nested"]) == 5
    await kv.delete("u", ["nested"])
    assert await kv.get("u") == {}


async def test_ensure_on_write_and_backfill_on_miss(kv):
    async def ensure_before_set(payload):
        await kv.provider.ensure(EnsurePayload(key=payload.key, default="default"))

    async def backfill_after_get(payload):
        if payload.error is None and payload.result is None:
            ensured = await kv.provider.ensure(EnsurePayload(key=payload.key, default="default"))
            payload.result = ensured.result

    await kv.add_middleware(
        CustomMiddleware(name="ensure", operations=[Operation.SET], phase="pre", hook=ensure_before_set),
    )
    await kv.add_middleware(
        CustomMiddleware(name="backfill", operations=[Operation.GET], phase="post", hook=backfill_after_get),
    )

    assert await kv.get("never-set") == "default"
    await kv.set("other", "written")
    assert await kv.get("other") == "written"


async def test_set_then_get(kv):
    await kv.set("k", {"list": [1, 2], "flag": False})
    assert await kv.get("k") == {"list": [1, 2], "flag": False}


async def test_has_lifecycle(kv):
    assert not await kv.has("k")
    await kv.set("k", "v")
    assert await kv.has("k")
    await kv.delete("k")
    assert not await kv.has("k")


async def test_increment_then_decrement_restores(kv):
    await kv.set("n", 41.5)
    await kv.increment("n")
    await kv.decrement("n")
    assert await kv.get("n") == 41.5


async def test_increment_non_number_raises_and_leaves_value(kv):
    await kv.set("n", "forty")
    with pytest.raises(ProviderError) as exc_info:
        await kv.increment("n")
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_TYPE
    assert exc_info.value.operation is Operation.INCREMENT
    assert await kv.get("n") == "forty"


async def test_push_appends(kv):
    await kv.set("l", [1])
    await kv.push("l", 2)
    assert await kv.get("l") == [1, 2]


async def test_push_missing_raises(kv):
    with pytest.raises(KVError) as exc_info:
        await kv.push("l", 1)
    assert exc_info.value.identifier is ErrorIdentifier.MISSING_DATA
    assert not await kv.has("l")
    assert await kv.size() == 0


async def test_mutators_return_manager_for_chaining(kv):
    chained = await (await kv.set("a", 1)).increment("a")
    assert chained is kv
    assert await kv.get("a") == 2


# ── remaining operations ─────────────────────────────────────


async def test_auto_key(kv):
    assert [await kv.auto_key() for _ in range(3)] == ["1", "2", "3"]


async def test_ensure(kv):
    assert await kv.ensure("a", {"n": 0}) == {"n": 0}
    await kv.set("a", {"n": 1})
    assert await kv.ensure("a", {"n": 0}) == {"n": 1}


async def test_math(kv):
    await kv.set("stats", {"score": 7})
    await kv.math("stats", "multiply", 3, "score")
    assert await kv.get("stats", "score") == 21


async def test_math_divide_by_zero(kv):
    await kv.set("n", 1)
    with pytest.raises(KVError) as exc_info:
        await kv.math("n", "divide", 0)
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_VALUE


async def test_math_without_real_result_leaves_value(kv):
    await kv.set("big", 10.0)
    await kv.set("neg", -8)
    with pytest.raises(KVError) as exc_info:
        await kv.math("big", "exponent", 1000)
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_VALUE
    with pytest.raises(KVError) as exc_info:
        await kv.math("neg", "exponent", 0.5)
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_VALUE
    assert await kv.get_all() == {"big": 10.0, "neg": -8}


async def test_set_past_end_of_list_keeps_list(kv):
    await kv.set("l", [1, 2])
    with pytest.raises(KVError) as exc_info:
        await kv.set("l", "x", "5")
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_PATH
    assert await kv.get("l") == [1, 2]


async def test_update(kv):
    await kv.set("a", {"n": 1})
    assert await kv.update("a", lambda value: {**value, "n": value["n"] + 1}) == {"n": 2}
    assert await kv.update("a", 5, "n") == 5
    assert await kv.get("a") == {"n": 5}
    assert await kv.update("missing", 1) is None
    assert not await kv.has("missing")


async def test_concurrent_async_updates(kv):
    await kv.set("n", 0)

    async def bump(value):
        await asyncio.sleep(0)
        return value + 1

    await asyncio.gather(*(kv.update("n", bump) for _ in range(10)))
    assert await kv.get("n") == 10


async def test_remove(kv):
    await kv.set("l", ["a", "b", "a"])
    await kv.remove("l", "a")
    assert await kv.get("l") == ["b"]


async def test_search_operations(kv):
    await kv.set_many({"ada": {"role": "admin"}, "bob": {"role": "user"}})
    assert await kv.find("user", "role") == {"role": "user"}
    assert await kv.find("guest", "role") is None
    assert await kv.some(lambda value: value["role"] == "admin")
    assert not await kv.every("admin", "role")
    assert await kv.map("role") == ["admin", "user"]
    assert await kv.map(lambda value: value["role"][0]) == ["a", "u"]


async def test_partition(kv):
    await kv.set_many([("a", 1), ("b", 2), ("c", 3)])
    odd, even = await kv.partition(lambda value: value % 2)
    assert odd == {"a": 1, "c": 3}
    assert even == {"b": 2}

    odd_values, even_values = await kv.partition(lambda value: value % 2, bulk=Bulk.VALUES)
    assert (odd_values, even_values) == ([1, 3], [2])


async def test_keys_values_size_random(kv):
    await kv.set_many({"a": 1, "b": 2})
    assert await kv.keys() == ["a", "b"]
    assert await kv.values() == [1, 2]
    assert await kv.size() == 2
    assert await kv.random() in (1, 2)
    assert await kv.random_key() in ("a", "b")


async def test_clear(kv):
    await kv.set("a", 1)
    await kv.auto_key()
    await kv.clear()
    assert await kv.size() == 0
    assert await kv.auto_key() == "1"


# ── bulk shapes ──────────────────────────────────────────────


@pytest.mark.parametrize(
    ("bulk", "expected"),
    [
        (Bulk.OBJECT, {}),
        (Bulk.MAP, OrderedDict()),
        (Bulk.VALUES, []),
        ("entries", []),
    ],
)
async def test_filter_empty_table_in_every_shape(kv, bulk, expected):
    result = await kv.filter(lambda value: True, bulk=bulk)
    assert result == expected
    assert type(result) is type(expected)


async def test_filter_visits_each_entry_once(kv):
    await kv.set_many({f"k{i}": i for i in range(5)})
    seen = []

    def record(value):
        seen.append(value)
        return value >= 3

    assert await kv.filter(record) == {"k3": 3, "k4": 4}
    assert seen == [0, 1, 2, 3, 4]


async def test_get_all_shapes(kv):
    await kv.set_many({"a": 1, "b": 2})
    assert await kv.get_all() == {"a": 1, "b": 2}
    assert await kv.get_all(Bulk.MAP) == OrderedDict([("a", 1), ("b", 2)])
    assert await kv.get_all("values") == [1, 2]
    assert await kv.get_all(Bulk.ENTRIES) == [("a", 1), ("b", 2)]


async def test_get_many_absent_keys(kv):
    await kv.set("a", 1)
    assert await kv.get_many(["a", "b"]) == {"a": 1, "b": None}
    assert await kv.get_many(["a", "b"], bulk=Bulk.ENTRIES) == [("a", 1), ("b", None)]


async def test_default_bulk_from_constructor(provider):
    kv = await KVManager(name="x", provider=provider, bulk=Bulk.VALUES).init()
    await kv.set("a", 1)
    assert await kv.get_all() == [1]


async def test_invalid_bulk(kv):
    with pytest.raises(CallerError) as exc_info:
        await kv.get_all("table")
    assert exc_info.value.identifier is ErrorIdentifier.INVALID_VALUE


# ── caller validation ────────────────────────────────────────


@pytest.fixture
async def spy(kv):
    """A middleware recording every payload it sees, in both phases."""
    seen = []
    await kv.add_middleware(
        CustomMiddleware(name="spy", operations=list(Operation), phase="both", hook=seen.append),
    )
    return seen


@pytest.mark.parametrize(
    ("call", "identifier"),
    [
        (lambda kv: kv.get(""), ErrorIdentifier.INVALID_KEY),
        (lambda kv: kv.set(None, 1), ErrorIdentifier.INVALID_KEY),
        (lambda kv: kv.set("a", None), ErrorIdentifier.MISSING_VALUE),
        (lambda kv: kv.get("a", 5), ErrorIdentifier.INVALID_PATH),
        (lambda kv: kv.get("a", ["x", ""]), ErrorIdentifier.INVALID_PATH),
        (lambda kv: kv.filter({"role": "admin"}), ErrorIdentifier.INVALID_VALUE),
        (lambda kv: kv.some(None), ErrorIdentifier.MISSING_VALUE),
        (lambda kv: kv.remove("a", [1]), ErrorIdentifier.INVALID_VALUE),
        (lambda kv: kv.math("a", "modulo", 2), ErrorIdentifier.INVALID_VALUE),
        (lambda kv: kv.math("a", "add", "2"), ErrorIdentifier.INVALID_TYPE),
        (lambda kv: kv.get_many("ab"), ErrorIdentifier.INVALID_TYPE),
        (lambda kv: kv.set_many({"": 1}), ErrorIdentifier.INVALID_KEY),
    ],
)
async def test_caller_errors_raised_before_dispatch(kv, spy, call, identifier):
    with pytest.raises(CallerError) as exc_info:
        await call(kv)
    assert exc_info.value.identifier is identifier
    assert spy == []


# ── pipeline ─────────────────────────────────────────────────


async def test_ordering_positioned_then_registration(kv):
    order = []

    def record(label):
        return lambda payload: order.append(label)

    await kv.add_middleware(CustomMiddleware(name="C", operations=[Operation.GET], hook=record("C")))
    await kv.add_middleware(
        CustomMiddleware(name="B", operations=[Operation.GET], hook=record("B"), position=5),
    )
    await kv.add_middleware(
        CustomMiddleware(name="A", operations=[Operation.GET], hook=record("A"), position=0),
    )

    await kv.get("x")
    assert order == ["A", "B", "C"]


async def test_phases_and_payload_shapes(kv, spy):
    await kv.set("a", 1)
    spy.clear()
    await kv.get("a")

    pre, post = spy
    assert pre is not post
    assert pre.phase is Phase.PRE_PROVIDER
    assert not hasattr(pre, "result")
    assert post.phase is Phase.POST_PROVIDER
    assert isinstance(post, GetResult)
    assert post.result == 1


async def test_metadata_is_shared_between_passes(kv):
    seen = []

    def stamp(payload):
        if payload.phase is Phase.PRE_PROVIDER:
            payload.metadata["stamp"] = "pre"
        else:
            seen.append(payload.metadata.get("stamp"))

    await kv.add_middleware(CustomMiddleware(name="stamp", operations=[Operation.GET], phase="both", hook=stamp))
    await kv.get("a")
    assert seen == ["pre"]


async def test_pre_error_skips_provider_and_reaches_post(kv):
    observed = []

    def deny(payload):
        payload.error = KVError(ErrorIdentifier.INVALID_VALUE, "denied")

    def skipped(payload):
        observed.append("later-pre")

    def observe(payload):
        observed.append(payload.error.identifier)

    await kv.add_middleware(CustomMiddleware(name="deny", operations=[Operation.SET], hook=deny, position=0))
    await kv.add_middleware(CustomMiddleware(name="later", operations=[Operation.SET], hook=skipped))
    await kv.add_middleware(CustomMiddleware(name="observe", operations=[Operation.SET], phase="post", hook=observe))

    with pytest.raises(KVError, match="denied"):
        await kv.set("a", 1)
    assert observed == [ErrorIdentifier.INVALID_VALUE]
    assert not await kv.has("a")


async def test_post_middleware_observes_provider_error(kv):
    observed = []
    await kv.add_middleware(
        CustomMiddleware(
            name="observe",
            operations=[Operation.PUSH],
            phase="post",
            hook=lambda payload: observed.append(payload.error),
        ),
    )
    with pytest.raises(ProviderError) as exc_info:
        await kv.push("missing", 1)
    assert observed == [exc_info.value]


async def test_first_error_survives_later_stages(kv):
    def clear_error(payload):
        payload.error = None

    def replace_error(payload):
        payload.error = KVError(ErrorIdentifier.INVALID_KEY, "replacement")

    await kv.add_middleware(
        CustomMiddleware(name="clear", operations=[Operation.PUSH], phase="post", hook=clear_error),
    )
    await kv.add_middleware(
        CustomMiddleware(name="replace", operations=[Operation.PUSH], phase="post", hook=replace_error),
    )

    with pytest.raises(ProviderError) as exc_info:
        await kv.push("missing", 1)
    assert exc_info.value.identifier is ErrorIdentifier.MISSING_DATA


async def test_disabled_middleware_skipped_until_used(kv):
    calls = []
    await kv.add_middleware(CustomMiddleware(name="spy", operations=[Operation.GET], hook=calls.append))

    kv.disable("spy")
    await kv.get("a")
    assert calls == []

    kv.use("spy")
    await kv.get("a")
    assert len(calls) == 1


async def test_shared_provider_between_managers():
    provider = MemoryProvider()
    first = await KVManager(name="one", provider=provider).init()
    await first.set("a", 1)
    second = await KVManager(name="two", provider=provider).init()
    assert await second.get("a") == 1
