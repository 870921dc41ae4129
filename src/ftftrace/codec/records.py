from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import BinaryIO, Protocol, Sequence

from .refs import (
    MAX_STRING_ID,
    MAX_STRING_LEN,
    MAX_THREAD_ID,
    Argument,
    FtfError,
    StringRef,
    ThreadRef,
    cap_argument,
    encode_argument,
    encode_str,
    padded,
)

MAGIC = 0x16547846
MAGIC_WORD = 0x0016547846040010

RECORD_METADATA = 0
RECORD_INITIALIZATION = 1
RECORD_STRING = 2
RECORD_THREAD = 3
RECORD_EVENT = 4

METADATA_PROVIDER_INFO = 1
METADATA_TRACE_INFO = 4

EVENT_INSTANT = 0
EVENT_DURATION_BEGIN = 2
EVENT_DURATION_END = 3

MAX_RECORD_WORDS = 0xFFF
MAX_ARGUMENTS = 15
MAX_PROVIDER_NAME_LEN = 0xFF

NANOS_PER_SECOND = 1_000_000_000


class Writable(Protocol):
    def write(self, data: bytes) -> object:
        ...


def _header(record_type: int, size_words: int) -> int:
    if not 0 < size_words <= MAX_RECORD_WORDS:
        raise FtfError(f"record size out of range: {size_words} words")
    return record_type | (size_words << 4)


def _u64(value: int) -> bytes:
    return (value & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little")


class Record:
    def to_bytes(self) -> bytes:
        raise NotImplementedError

    def write(self, sink: Writable | BinaryIO) -> None:
        sink.write(self.to_bytes())


@dataclass(frozen=True, slots=True)
class MagicNumberRecord(Record):
    def to_bytes(self) -> bytes:
        return _u64(MAGIC_WORD)


@dataclass(frozen=True, slots=True)
class ProviderInfoRecord(Record):
    provider_id: int
    name: str

    def to_bytes(self) -> bytes:
        data = encode_str(self.name, MAX_PROVIDER_NAME_LEN)
        body = padded(data)
        header = _header(RECORD_METADATA, 1 + len(body) // 8)
        header |= METADATA_PROVIDER_INFO << 16
        header |= (self.provider_id & 0xFFFFFFFF) << 20
        header |= len(data) << 52
        return _u64(header) + body


@dataclass(frozen=True, slots=True)
class InitializationRecord(Record):
    ticks_per_second: int = NANOS_PER_SECOND

    def to_bytes(self) -> bytes:
        return _u64(_header(RECORD_INITIALIZATION, 2)) + _u64(self.ticks_per_second)


@dataclass(frozen=True, slots=True)
class StringRecord(Record):
    index: int
    value: str

    def to_bytes(self) -> bytes:
        if not 0 < self.index <= MAX_STRING_ID:
            raise FtfError(f"string index out of range: {self.index}")
        data = encode_str(self.value)
        body = padded(data)
        header = _header(RECORD_STRING, 1 + len(body) // 8)
        header |= self.index << 16
        header |= len(data) << 32
        return _u64(header) + body


@dataclass(frozen=True, slots=True)
class ThreadRecord(Record):
    index: int
    process_koid: int
    thread_koid: int

    def to_bytes(self) -> bytes:
        if not 0 < self.index <= MAX_THREAD_ID:
            raise FtfError(f"thread index out of range: {self.index}")
        header = _header(RECORD_THREAD, 3) | (self.index << 16)
        return _u64(header) + _u64(self.process_koid) + _u64(self.thread_koid)


@dataclass(frozen=True, slots=True)
class EventRecord(Record):
    event_type: int
    timestamp: int
    thread: ThreadRef
    category: StringRef
    name: StringRef
    arguments: tuple[Argument, ...] = field(default_factory=tuple)

    def _body(self) -> bytes:
        body = _u64(self.timestamp)
        body += self.thread.payload()
        body += self.category.payload()
        body += self.name.payload()
        for arg in self.arguments:
            body += encode_argument(arg)
        return body

    def size_words(self) -> int:
        return 1 + len(self._body()) // 8

    def capped(self, limit: int) -> "EventRecord":
        """Copy with every inline string cut to at most ``limit`` bytes."""
        return replace(
            self,
            category=self.category.capped(limit),
            name=self.name.capped(limit),
            arguments=tuple(cap_argument(arg, limit) for arg in self.arguments),
        )

    def to_bytes(self) -> bytes:
        if len(self.arguments) > MAX_ARGUMENTS:
            raise FtfError(f"too many arguments: {len(self.arguments)}")
        body = self._body()
        header = _header(RECORD_EVENT, 1 + len(body) // 8)
        header |= self.event_type << 16
        header |= len(self.arguments) << 20
        header |= self.thread.index << 24
        header |= self.category.field() << 32
        header |= self.name.field() << 48
        return _u64(header) + body


def fit_event(record: EventRecord) -> EventRecord:
    """Shorten inline strings until the record fits in ``MAX_RECORD_WORDS``.

    Picks the largest common byte limit for all inline strings that fits;
    interned references and fixed-size arguments are left alone. Even with
    every inline string emptied a record of 15 arguments stays far below the
    limit, so the result is always writable.
    """
    if record.size_words() <= MAX_RECORD_WORDS:
        return record
    low, high = 0, MAX_STRING_LEN
    while low < high:
        middle = (low + high + 1) // 2
        if record.capped(middle).size_words() <= MAX_RECORD_WORDS:
            low = middle
        else:
            high = middle - 1
    return record.capped(low)


def create_magic_number() -> MagicNumberRecord:
    return MagicNumberRecord()


def create_provider_info(provider_id: int, name: str) -> ProviderInfoRecord:
    return ProviderInfoRecord(provider_id=provider_id, name=name)


def create_initialization(ticks_per_second: int = NANOS_PER_SECOND) -> InitializationRecord:
    return InitializationRecord(ticks_per_second=ticks_per_second)


def create_string(index: int, value: str) -> StringRecord:
    return StringRecord(index=index, value=value)


def create_thread(index: int, process_koid: int, thread_koid: int) -> ThreadRecord:
    return ThreadRecord(index=index, process_koid=process_koid, thread_koid=thread_koid)


def create_instant_event(
    timestamp: int,
    thread: ThreadRef,
    category: StringRef,
    name: StringRef,
    arguments: Sequence[Argument] = (),
) -> EventRecord:
    return EventRecord(EVENT_INSTANT, timestamp, thread, category, name, tuple(arguments))


def create_duration_begin_event(
    timestamp: int,
    thread: ThreadRef,
    category: StringRef,
    name: StringRef,
    arguments: Sequence[Argument] = (),
) -> EventRecord:
    return EventRecord(
        EVENT_DURATION_BEGIN, timestamp, thread, category, name, tuple(arguments)
    )


def create_duration_end_event(
    timestamp: int,
    thread: ThreadRef,
    category: StringRef,
    name: StringRef,
) -> EventRecord:
    return EventRecord(EVENT_DURATION_END, timestamp, thread, category, name)
