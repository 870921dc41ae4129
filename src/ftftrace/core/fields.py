from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ftftrace.codec import (
    Argument,
    BoolArg,
    FloatArg,
    Int64Arg,
    StrArg,
    StringRef,
    UInt64Arg,
)

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U64_MAX = (1 << 64) - 1


class FieldKind(enum.Enum):
    STR = "str"
    I64 = "i64"
    U64 = "u64"
    BOOL = "bool"
    F64 = "f64"
    DEBUG = "debug"


@dataclass(frozen=True, slots=True)
class FieldValue:
    kind: FieldKind
    value: Any

    @classmethod
    def u64(cls, value: int) -> "FieldValue":
        if not 0 <= value <= _U64_MAX:
            return cls(FieldKind.DEBUG, repr(value))
        return cls(FieldKind.U64, value)

    @classmethod
    def of(cls, value: Any) -> "FieldValue":
        if isinstance(value, FieldValue):
            return value
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls(FieldKind.BOOL, value)
        if isinstance(value, int):
            if _I64_MIN <= value <= _I64_MAX:
                return cls(FieldKind.I64, value)
            if 0 <= value <= _U64_MAX:
                return cls(FieldKind.U64, value)
            return cls(FieldKind.DEBUG, repr(value))
        if isinstance(value, float):
            return cls(FieldKind.F64, value)
        if isinstance(value, str):
            return cls(FieldKind.STR, value)
        if isinstance(value, BaseException):
            return cls(FieldKind.DEBUG, str(value))
        return cls(FieldKind.DEBUG, repr(value))


Fields = Mapping[str, Any]


def field_values(fields: Fields) -> list[tuple[str, FieldValue]]:
    return [(name, FieldValue.of(value)) for name, value in fields.items()]


def argument_strings(values: list[tuple[str, FieldValue]]) -> list[str]:
    strings: list[str] = []
    for name, field in values:
        strings.append(name)
        if field.kind in (FieldKind.STR, FieldKind.DEBUG):
            strings.append(field.value)
    return strings


def to_argument(
    name: str, field: FieldValue, intern: Callable[[str], StringRef]
) -> Argument:
    name_ref = intern(name)
    kind = field.kind
    if kind is FieldKind.BOOL:
        return BoolArg(name_ref, field.value)
    if kind is FieldKind.I64:
        return Int64Arg(name_ref, field.value)
    if kind is FieldKind.U64:
        return UInt64Arg(name_ref, field.value)
    if kind is FieldKind.F64:
        return FloatArg(name_ref, field.value)
    return StrArg(name_ref, intern(field.value))
