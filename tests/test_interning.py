from __future__ import annotations

import io
import logging
import threading

from ftftrace.codec import read_records
from ftftrace.core.interning import StringTable, ThreadTable, string_refs, thread_ref
from ftftrace.core.sink import RecordSink


class FailingWrites(io.BytesIO):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def write(self, data) -> int:
        if self.fail:
            raise OSError("disk full")
        return super().write(data)


def _intern(table, key):
    with table.batch() as batch:
        return batch.get(key)


def _refs(table: StringTable, values: list[str]):
    with table.batch() as batch:
        return string_refs(batch, values)


def _ref(table: StringTable, value: str):
    return _refs(table, [value])[0]


def _thread(table: ThreadTable, process_koid: int, thread_koid: int):
    with table.batch() as batch:
        return thread_ref(batch, process_koid, thread_koid)


def _string_records(buffer: io.BytesIO) -> list[dict]:
    return [
        record.data
        for record in read_records(buffer.getvalue(), include_interning=True)
        if record.kind == "string"
    ]


def test_same_value_returns_same_id_and_one_record() -> None:
    buffer = io.BytesIO()
    table = StringTable(RecordSink(buffer))

    first = _intern(table, "work")
    second = _intern(table, "work")

    assert first == second == 1
    assert _string_records(buffer) == [{"index": 1, "value": "work"}]


def test_ids_are_sequential_and_never_zero() -> None:
    table = StringTable(RecordSink(io.BytesIO()))

    ids = [_intern(table, f"value-{index}") for index in range(50)]

    assert ids == list(range(1, 51))
    assert 0 not in ids


def test_wraparound_skips_zero_and_evicts_previous_owner(caplog) -> None:
    buffer = io.BytesIO()
    table = StringTable(RecordSink(buffer), max_id=3)

    with caplog.at_level(logging.WARNING, logger="ftftrace.core.interning"):
        assert [_intern(table, value) for value in "abc"] == [1, 2, 3]
        assert _intern(table, "d") == 1

    assert table.peek("a") is None
    assert table.peek("d") == 1
    assert _intern(table, "b") == 2
    assert table.wraps == 1
    assert len(table) == 3
    assert any("exhausted" in record.getMessage() for record in caplog.records)
    assert _string_records(buffer)[-1] == {"index": 1, "value": "d"}


def test_batch_pins_ids_across_wraparound() -> None:
    table = StringTable(RecordSink(io.BytesIO()), max_id=3)
    _refs(table, ["a", "b", "c"])

    refs = _refs(table, ["a", "x", "y"])

    assert refs[0].index == 1
    assert refs[1].index == 2
    assert refs[2].index == 3
    assert table.peek("a") == 1


def test_batch_falls_back_to_inline_when_all_ids_pinned(caplog) -> None:
    table = StringTable(RecordSink(io.BytesIO()), max_id=2)

    with caplog.at_level(logging.WARNING, logger="ftftrace.core.interning"):
        refs = _refs(table, ["a", "b", "c"])

    assert [ref.index for ref in refs[:2]] == [1, 2]
    assert refs[2].is_inline
    assert refs[2].inline == "c"


def test_empty_string_is_never_interned() -> None:
    buffer = io.BytesIO()
    table = StringTable(RecordSink(buffer))

    ref = _ref(table, "")

    assert ref.field() == 0
    assert len(table) == 0
    assert buffer.getvalue() == b""


def test_failed_intern_write_returns_inline_and_retries(caplog) -> None:
    buffer = FailingWrites()
    table = StringTable(RecordSink(buffer))
    buffer.fail = True

    with caplog.at_level(logging.WARNING, logger="ftftrace.core.sink"):
        ref = _ref(table, "payload")

    assert ref.is_inline
    assert ref.inline == "payload"
    assert table.peek("payload") is None
    assert any("StringRecord" in record.getMessage() for record in caplog.records)

    buffer.fail = False
    retried = _ref(table, "payload")

    assert not retried.is_inline
    assert _string_records(buffer) == [{"index": retried.index, "value": "payload"}]


def test_thread_table_interns_pairs() -> None:
    buffer = io.BytesIO()
    table = ThreadTable(RecordSink(buffer))

    first = _thread(table, 10, 1)
    again = _thread(table, 10, 1)
    other = _thread(table, 10, 2)

    assert first.index == again.index == 1
    assert other.index == 2
    threads = [
        record.data
        for record in read_records(buffer.getvalue(), include_interning=True)
        if record.kind == "thread"
    ]
    assert threads == [
        {"index": 1, "pid": 10, "tid": 1},
        {"index": 2, "pid": 10, "tid": 2},
    ]


def test_thread_table_failure_falls_back_to_inline() -> None:
    buffer = FailingWrites()
    table = ThreadTable(RecordSink(buffer))
    buffer.fail = True

    ref = _thread(table, 10, 3)

    assert ref.is_inline
    assert (ref.process_koid, ref.thread_koid) == (10, 3)


def test_concurrent_callers_share_one_id_per_value() -> None:
    buffer = io.BytesIO()
    table = StringTable(RecordSink(buffer))
    values = [f"value-{index}" for index in range(40)]
    results: list[dict[str, int | None]] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append({value: _intern(table, value) for value in values})

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert all(result == results[0] for result in results)
    records = _string_records(buffer)
    assert len(records) == len(values)
    assert sorted(record["value"] for record in records) == sorted(values)
