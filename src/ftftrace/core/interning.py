from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Generic, Hashable, Iterator, TypeVar

from ftftrace.codec import Record, StringRef, ThreadRef, create_string, create_thread
from ftftrace.codec.refs import MAX_STRING_ID, MAX_THREAD_ID

from .sink import RecordSink

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class InternBatch(Generic[K]):
    """Lookups made while holding the table lock for one record.

    Ids handed out through the batch are pinned: a wraparound never reissues
    them before the batch ends, so every reference in the record stays valid.
    """

    def __init__(self, table: "InternTable[K]") -> None:
        self._table = table
        self._pinned: set[int] = set()

    def get(self, key: K) -> int | None:
        index = self._table._intern_locked(key, self._pinned)
        if index is not None:
            self._pinned.add(index)
        return index


class InternTable(Generic[K]):
    """Key -> small integer id, emitting the defining record on first use.

    The table lock spans lookup, allocation and the intern record write, so
    two callers never allocate different ids for the same key and an id is
    never handed out before its record reached the sink. Ids run from 1 to
    ``max_id`` and wrap back to 1; a reissued id evicts the key that held it.
    """

    def __init__(
        self,
        name: str,
        max_id: int,
        sink: RecordSink,
        make_record: Callable[[int, K], Record],
    ) -> None:
        if max_id < 1:
            raise ValueError("max_id must be positive")
        self.name = name
        self.max_id = max_id
        self._sink = sink
        self._make_record = make_record
        self._by_key: dict[K, int] = {}
        self._by_id: dict[int, K] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.wraps = 0

    @contextmanager
    def batch(self) -> Iterator[InternBatch[K]]:
        with self._lock:
            yield InternBatch(self)

    def _intern_locked(self, key: K, pinned: set[int]) -> int | None:
        found = self._by_key.get(key)
        if found is not None:
            return found
        index = self._claim(pinned)
        if index is None:
            logger.warning("%s intern table has no free id for this record", self.name)
            return None
        if not self._sink.emit(self._make_record(index, key)):
            return None
        stale = self._by_id.get(index)
        if stale is not None:
            del self._by_key[stale]
        self._by_key[key] = index
        self._by_id[index] = key
        return index

    def _claim(self, pinned: set[int]) -> int | None:
        for _ in range(self.max_id):
            index = self._next_id
            self._advance()
            if index not in pinned:
                return index
        return None

    def _advance(self) -> None:
        if self._next_id < self.max_id:
            self._next_id += 1
            return
        self._next_id = 1
        self.wraps += 1
        if self.wraps == 1:
            logger.warning(
                "%s intern table exhausted %d ids; reissuing from 1", self.name, self.max_id
            )

    def peek(self, key: K) -> int | None:
        with self._lock:
            return self._by_key.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_key)


def string_refs(batch: InternBatch[str], values: list[str]) -> list[StringRef]:
    refs = []
    for value in values:
        # the empty string has its own encoding and is never interned
        index = batch.get(value) if value else None
        if index is None:
            refs.append(StringRef.of_inline(value))
        else:
            refs.append(StringRef.ref(index))
    return refs


def thread_ref(
    batch: InternBatch[tuple[int, int]], process_koid: int, thread_koid: int
) -> ThreadRef:
    index = batch.get((process_koid, thread_koid))
    if index is None:
        return ThreadRef.of_inline(process_koid, thread_koid)
    return ThreadRef.ref(index)


class StringTable(InternTable[str]):
    def __init__(self, sink: RecordSink, max_id: int = MAX_STRING_ID) -> None:
        super().__init__("string", max_id, sink, create_string)


class ThreadTable(InternTable[tuple[int, int]]):
    def __init__(self, sink: RecordSink, max_id: int = MAX_THREAD_ID) -> None:
        super().__init__(
            "thread", max_id, sink, lambda index, key: create_thread(index, key[0], key[1])
        )
