"""Enumerations shared by the facade, middleware and providers."""

from __future__ import annotations

from enum import Enum


class Operation(str, Enum):
    """Every named unit of work the key/value API exposes."""

    AUTO_KEY = "auto_key"
    CLEAR = "clear"
    DECREMENT = "decrement"
    DELETE = "delete"
    ENSURE = "ensure"
    EVERY = "every"
    FILTER = "filter"
    FIND = "find"
    GET = "get"
    GET_ALL = "get_all"
    GET_MANY = "get_many"
    HAS = "has"
    INCREMENT = "increment"
    KEYS = "keys"
    MAP = "map"
    MATH = "math"
    PARTITION = "partition"
    PUSH = "push"
    RANDOM = "random"
    RANDOM_KEY = "random_key"
    REMOVE = "remove"
    SET = "set"
    SET_MANY = "set_many"
    SIZE = "size"
    SOME = "some"
    UPDATE = "update"
    VALUES = "values"


class Phase(str, Enum):
    """Where in the pipeline a payload currently is."""

    UNSET = "unset"
    PRE_PROVIDER = "pre_provider"
    POST_PROVIDER = "post_provider"


class Mode(str, Enum):
    """Selector discriminant for operations taking a literal or a callback."""

    LITERAL = "literal"
    CALLBACK = "callback"
    PATH = "path"


class Bulk(str, Enum):
    """Output shape for multi-entry results.

    * ``OBJECT``  -- plain ``dict`` of key to value.
    * ``MAP``     -- ``collections.OrderedDict`` of key to value.
    * ``VALUES``  -- flat ``list`` of values.
    * ``ENTRIES`` -- ``list`` of ``(key, value)`` tuples.
    """

    OBJECT = "object"
    MAP = "map"
    VALUES = "values"
    ENTRIES = "entries"


class MathOperator(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    REMAINDER = "remainder"
    EXPONENT = "exponent"
