from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from .records import (
    EVENT_DURATION_BEGIN,
    EVENT_DURATION_END,
    EVENT_INSTANT,
    MAGIC,
    METADATA_PROVIDER_INFO,
    METADATA_TRACE_INFO,
    RECORD_EVENT,
    RECORD_INITIALIZATION,
    RECORD_METADATA,
    RECORD_STRING,
    RECORD_THREAD,
)
from .refs import ARG_BOOL, ARG_DOUBLE, ARG_INT64, ARG_STRING, ARG_UINT64, FtfError

EVENT_KINDS = {
    EVENT_INSTANT: "instant",
    EVENT_DURATION_BEGIN: "begin",
    EVENT_DURATION_END: "end",
}


@dataclass(slots=True)
class DecodedRecord:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


def _bits(word: int, low: int, count: int) -> int:
    return (word >> low) & ((1 << count) - 1)


class _Cursor:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.offset = 0

    def word(self) -> int:
        if self.offset + 8 > len(self.payload):
            raise FtfError("record truncated")
        value = int.from_bytes(self.payload[self.offset : self.offset + 8], "little")
        self.offset += 8
        return value

    def signed(self) -> int:
        value = self.word()
        return value - (1 << 64) if value >= (1 << 63) else value

    def double(self) -> float:
        raw = self.word().to_bytes(8, "little")
        return struct.unpack("<d", raw)[0]

    def text(self, length: int) -> str:
        end = self.offset + length
        if end > len(self.payload):
            raise FtfError("string truncated")
        value = self.payload[self.offset : end].decode("utf-8", errors="replace")
        self.offset += (length + 7) // 8 * 8
        return value


class TraceReader:
    """Decodes an FTF byte stream, resolving interned strings and threads in order."""

    def __init__(self) -> None:
        self.strings: dict[int, str] = {}
        self.threads: dict[int, tuple[int, int]] = {}
        self.provider: dict[str, Any] | None = None
        self.ticks_per_second: int | None = None
        self.saw_magic = False

    def _string(self, cursor: _Cursor, ref: int) -> str:
        if ref == 0:
            return ""
        if ref & 0x8000:
            return cursor.text(ref & 0x7FFF)
        if ref not in self.strings:
            raise FtfError(f"reference to unknown string index {ref}")
        return self.strings[ref]

    def _thread(self, cursor: _Cursor, ref: int) -> tuple[int, int]:
        if ref == 0:
            return cursor.word(), cursor.word()
        if ref not in self.threads:
            raise FtfError(f"reference to unknown thread index {ref}")
        return self.threads[ref]

    def _argument(self, cursor: _Cursor) -> tuple[str, Any]:
        header = cursor.word()
        arg_type = _bits(header, 0, 4)
        size = _bits(header, 4, 12)
        start = cursor.offset - 8
        name = self._string(cursor, _bits(header, 16, 16))
        if arg_type == ARG_STRING:
            value: Any = self._string(cursor, _bits(header, 32, 16))
        elif arg_type == ARG_BOOL:
            value = bool(_bits(header, 32, 1))
        elif arg_type == ARG_INT64:
            value = cursor.signed()
        elif arg_type == ARG_UINT64:
            value = cursor.word()
        elif arg_type == ARG_DOUBLE:
            value = cursor.double()
        else:
            value = None
        cursor.offset = start + size * 8
        return name, value

    def _decode(self, header: int, cursor: _Cursor) -> DecodedRecord | None:
        record_type = _bits(header, 0, 4)
        if record_type == RECORD_METADATA:
            metadata_type = _bits(header, 16, 4)
            if metadata_type == METADATA_TRACE_INFO and _bits(header, 20, 4) == 0:
                if _bits(header, 24, 32) != MAGIC:
                    raise FtfError("bad magic number")
                self.saw_magic = True
                return DecodedRecord("magic")
            if metadata_type == METADATA_PROVIDER_INFO:
                provider_id = _bits(header, 20, 32)
                name = cursor.text(_bits(header, 52, 8))
                self.provider = {"id": provider_id, "name": name}
                return DecodedRecord("provider", dict(self.provider))
            return None
        if record_type == RECORD_INITIALIZATION:
            self.ticks_per_second = cursor.word()
            return DecodedRecord("initialization", {"ticks_per_second": self.ticks_per_second})
        if record_type == RECORD_STRING:
            index = _bits(header, 16, 15)
            value = cursor.text(_bits(header, 32, 15))
            self.strings[index] = value
            return DecodedRecord("string", {"index": index, "value": value})
        if record_type == RECORD_THREAD:
            index = _bits(header, 16, 8)
            koids = (cursor.word(), cursor.word())
            self.threads[index] = koids
            return DecodedRecord(
                "thread", {"index": index, "pid": koids[0], "tid": koids[1]}
            )
        if record_type == RECORD_EVENT:
            event_type = _bits(header, 16, 4)
            arg_count = _bits(header, 20, 4)
            timestamp = cursor.word()
            pid, tid = self._thread(cursor, _bits(header, 24, 8))
            category = self._string(cursor, _bits(header, 32, 16))
            name = self._string(cursor, _bits(header, 48, 16))
            args: dict[str, Any] = {}
            for _ in range(arg_count):
                arg_name, value = self._argument(cursor)
                args[arg_name] = value
            return DecodedRecord(
                EVENT_KINDS.get(event_type, f"event-{event_type}"),
                {
                    "ts": timestamp,
                    "pid": pid,
                    "tid": tid,
                    "category": category,
                    "name": name,
                    "args": args,
                },
            )
        return None

    def iter_records(self, data: bytes, *, include_interning: bool = False) -> Iterator[DecodedRecord]:
        offset = 0
        while offset < len(data):
            if offset + 8 > len(data):
                raise FtfError(f"trailing bytes at offset {offset}")
            header = int.from_bytes(data[offset : offset + 8], "little")
            size = _bits(header, 4, 12)
            if size == 0:
                raise FtfError(f"zero-sized record at offset {offset}")
            end = offset + size * 8
            if end > len(data):
                raise FtfError(f"record at offset {offset} runs past end of stream")
            record = self._decode(header, _Cursor(data[offset + 8 : end]))
            offset = end
            if record is None:
                continue
            if not include_interning and record.kind in {"string", "thread"}:
                continue
            yield record


def read_records(data: bytes, *, include_interning: bool = False) -> list[DecodedRecord]:
    return list(TraceReader().iter_records(data, include_interning=include_interning))


def read_trace_file(path: Path, *, include_interning: bool = False) -> list[DecodedRecord]:
    return read_records(path.read_bytes(), include_interning=include_interning)
