"""
Runtime values and the coercion rules between them.

A Value is a string, a number or a boolean. Numbers are 32-bit floats:
they are rounded to float32 on construction and every arithmetic result
is computed in float32, so scripts see the same results on every host.

No operation here raises a type error. Mixed-type operations coerce:

    String form:   true / false, shortest float32 decimal, the string itself
    Numeric form:  false -> 0, true -> 1, any string -> 0, the number itself
    Truthiness:    the boolean itself, non-empty string, non-zero number

Equality is not transitive across types: "1" == 1 and 1 == true, but
"1" != true.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Union

import numpy as np


class ValueKind(Enum):
    STRING = auto()
    NUMBER = auto()
    BOOLEAN = auto()


def to_float32(number: float) -> float:
    """Round a Python float to the nearest float32."""
    with np.errstate(over='ignore'):
        return float(np.float32(number))


def format_number(number: float) -> str:
    """Shortest decimal text that reads back as the same float32."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    return np.format_float_positional(np.float32(number), trim='-')


@dataclass(frozen=True, eq=False)
class Value:
    """
    A dynamically typed script value.

    Build values with Value.string(), Value.number(), Value.boolean() or
    Value.of() for plain Python data.
    """
    kind: ValueKind
    raw: Union[str, float, bool]

    @classmethod
    def string(cls, text: str) -> Value:
        return cls(ValueKind.STRING, str(text))

    @classmethod
    def number(cls, number: float) -> Value:
        return cls(ValueKind.NUMBER, to_float32(float(number)))

    @classmethod
    def boolean(cls, flag: bool) -> Value:
        return cls(ValueKind.BOOLEAN, bool(flag))

    @classmethod
    def of(cls, data: Any) -> Value:
        """Wrap a str, bool, int or float (a Value is returned unchanged)."""
        if isinstance(data, Value):
            return data
        if isinstance(data, bool):
            return cls.boolean(data)
        if isinstance(data, (int, float)):
            return cls.number(data)
        if isinstance(data, str):
            return cls.string(data)
        raise TypeError(f"cannot convert {type(data).__name__} to a script value")

    @property
    def is_string(self) -> bool:
        return self.kind == ValueKind.STRING

    @property
    def is_number(self) -> bool:
        return self.kind == ValueKind.NUMBER

    @property
    def is_boolean(self) -> bool:
        return self.kind == ValueKind.BOOLEAN

    def as_string(self) -> str:
        if self.kind == ValueKind.BOOLEAN:
            return "true" if self.raw else "false"
        if self.kind == ValueKind.NUMBER:
            return format_number(self.raw)
        return self.raw

    def as_number(self) -> float:
        if self.kind == ValueKind.BOOLEAN:
            return 1.0 if self.raw else 0.0
        if self.kind == ValueKind.NUMBER:
            return self.raw
        return 0.0

    def as_bool(self) -> bool:
        if self.kind == ValueKind.BOOLEAN:
            return self.raw
        if self.kind == ValueKind.NUMBER:
            return self.raw != 0.0
        return self.raw != ""

    def to_python(self) -> Union[str, float, bool]:
        return self.raw

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        if self.kind == ValueKind.STRING:
            return f"Value.string({self.raw!r})"
        if self.kind == ValueKind.NUMBER:
            return f"Value.number({format_number(self.raw)})"
        return f"Value.boolean({self.raw})"

    def __str__(self) -> str:
        return self.as_string()


def values_equal(left: Value, right: Value) -> bool:
    if left.is_string or right.is_string:
        return left.as_string() == right.as_string()
    if left.is_number or right.is_number:
        return left.as_number() == right.as_number()
    return left.raw == right.raw


def _arithmetic(op, left: float, right: float) -> Value:
    with np.errstate(all='ignore'):
        result = op(np.float32(left), np.float32(right))
    return Value(ValueKind.NUMBER, float(result))


def add(left: Value, right: Value) -> Value:
    """`+` concatenates when either side is a string, otherwise adds numerically."""
    if left.is_string or right.is_string:
        return Value.string(left.as_string() + right.as_string())
    return _arithmetic(np.add, left.as_number(), right.as_number())


def subtract(left: Value, right: Value) -> Value:
    return _arithmetic(np.subtract, left.as_number(), right.as_number())


def multiply(left: Value, right: Value) -> Value:
    return _arithmetic(np.multiply, left.as_number(), right.as_number())


def divide(left: Value, right: Value) -> Value:
    """Float32 division; dividing by zero gives inf or NaN rather than raising."""
    return _arithmetic(np.divide, left.as_number(), right.as_number())


def negate(value: Value) -> Value:
    return Value(ValueKind.NUMBER, -value.as_number())
