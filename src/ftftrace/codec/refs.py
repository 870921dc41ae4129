from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import Union

MAX_STRING_ID = 0x7FFF
MAX_THREAD_ID = 0xFF
# a string record at this length still fits the 0xFFF word record limit
MAX_STRING_LEN = 32000

_INLINE_STRING_FLAG = 0x8000


class FtfError(ValueError):
    """Raised when a record cannot be encoded or a stream cannot be decoded."""


def encode_str(value: str, limit: int = MAX_STRING_LEN) -> bytes:
    """UTF-8 encode ``value``, cut to at most ``limit`` bytes on a character boundary."""
    data = value.encode("utf-8")
    if len(data) > limit:
        data = data[:limit].decode("utf-8", errors="ignore").encode("utf-8")
    return data


def padded(data: bytes) -> bytes:
    remainder = len(data) % 8
    if remainder:
        data += b"\x00" * (8 - remainder)
    return data


def words_for(data: bytes) -> int:
    return (len(data) + 7) // 8


@dataclass(frozen=True, slots=True)
class StringRef:
    """Reference to a string: an interned index, or the raw value inline."""

    index: int = 0
    inline: str | None = None

    @classmethod
    def ref(cls, index: int) -> "StringRef":
        if not 0 < index <= MAX_STRING_ID:
            raise FtfError(f"string index out of range: {index}")
        return cls(index=index)

    @classmethod
    def of_inline(cls, value: str) -> "StringRef":
        return cls(inline=value)

    @property
    def is_inline(self) -> bool:
        return self.inline is not None

    def field(self) -> int:
        if self.inline is None:
            return self.index
        data = encode_str(self.inline)
        if not data:
            return 0
        return _INLINE_STRING_FLAG | len(data)

    def payload(self) -> bytes:
        if self.inline is None:
            return b""
        return padded(encode_str(self.inline))

    def capped(self, limit: int) -> "StringRef":
        """Same reference with an inline value cut to ``limit`` bytes."""
        if self.inline is None:
            return self
        data = encode_str(self.inline, limit)
        if len(data) == len(self.inline.encode("utf-8")):
            return self
        return StringRef(inline=data.decode("utf-8"))


@dataclass(frozen=True, slots=True)
class ThreadRef:
    """Reference to a thread: an interned index, or the koid pair inline."""

    index: int = 0
    process_koid: int = 0
    thread_koid: int = 0

    @classmethod
    def ref(cls, index: int) -> "ThreadRef":
        if not 0 < index <= MAX_THREAD_ID:
            raise FtfError(f"thread index out of range: {index}")
        return cls(index=index)

    @classmethod
    def of_inline(cls, process_koid: int, thread_koid: int) -> "ThreadRef":
        return cls(index=0, process_koid=process_koid, thread_koid=thread_koid)

    @property
    def is_inline(self) -> bool:
        return self.index == 0

    def payload(self) -> bytes:
        if self.index:
            return b""
        return _u64(self.process_koid) + _u64(self.thread_koid)


def _u64(value: int) -> bytes:
    return (value & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little")


ARG_INT64 = 3
ARG_UINT64 = 4
ARG_DOUBLE = 5
ARG_STRING = 6
ARG_BOOL = 9


@dataclass(frozen=True, slots=True)
class StrArg:
    name: StringRef
    value: StringRef


@dataclass(frozen=True, slots=True)
class Int64Arg:
    name: StringRef
    value: int


@dataclass(frozen=True, slots=True)
class UInt64Arg:
    name: StringRef
    value: int


@dataclass(frozen=True, slots=True)
class BoolArg:
    name: StringRef
    value: bool


@dataclass(frozen=True, slots=True)
class FloatArg:
    name: StringRef
    value: float


Argument = Union[StrArg, Int64Arg, UInt64Arg, BoolArg, FloatArg]


def cap_argument(arg: Argument, limit: int) -> Argument:
    if isinstance(arg, StrArg):
        return StrArg(arg.name.capped(limit), arg.value.capped(limit))
    return replace(arg, name=arg.name.capped(limit))


def encode_argument(arg: Argument) -> bytes:
    name_field = arg.name.field()
    body = arg.name.payload()
    upper = 0
    if isinstance(arg, StrArg):
        arg_type = ARG_STRING
        upper = arg.value.field()
        body += arg.value.payload()
    elif isinstance(arg, BoolArg):
        arg_type = ARG_BOOL
        upper = 1 if arg.value else 0
    elif isinstance(arg, Int64Arg):
        if not -(1 << 63) <= arg.value < (1 << 63):
            raise FtfError(f"int64 argument out of range: {arg.value}")
        arg_type = ARG_INT64
        body += _u64(arg.value)
    elif isinstance(arg, UInt64Arg):
        if not 0 <= arg.value < (1 << 64):
            raise FtfError(f"uint64 argument out of range: {arg.value}")
        arg_type = ARG_UINT64
        body += _u64(arg.value)
    elif isinstance(arg, FloatArg):
        arg_type = ARG_DOUBLE
        body += struct.pack("<d", arg.value)
    else:
        raise FtfError(f"unsupported argument: {arg!r}")
    size = 1 + len(body) // 8
    header = arg_type | (size << 4) | (name_field << 16) | (upper << 32)
    return _u64(header) + body
