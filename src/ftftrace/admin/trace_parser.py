from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

from ftftrace.codec import DecodedRecord, FtfError, TraceReader

_EVENT_KINDS = {"instant", "begin", "end"}

Events = list[dict[str, Any]]


def _pair_durations(events: Events) -> tuple[Events, Events, Events]:
    # begin/end pairs match by name on the same thread, innermost first
    stacks: dict[tuple[int, int], list[dict[str, Any]]] = {}
    durations: list[dict[str, Any]] = []
    orphan_ends: list[dict[str, Any]] = []
    for event in events:
        key = (event["pid"], event["tid"])
        if event["kind"] == "begin":
            stacks.setdefault(key, []).append(event)
            continue
        if event["kind"] != "end":
            continue
        stack = stacks.get(key, [])
        match_index = None
        for index in range(len(stack) - 1, -1, -1):
            if stack[index]["name"] == event["name"]:
                match_index = index
                break
        if match_index is None:
            orphan_ends.append(event)
            continue
        begin = stack.pop(match_index)
        durations.append(
            {
                "name": begin["name"],
                "category": begin["category"],
                "pid": begin["pid"],
                "tid": begin["tid"],
                "start": begin["ts"],
                "end": event["ts"],
                "duration_ns": event["ts"] - begin["ts"],
                "args": begin["args"],
            }
        )
    open_spans = [event for stack in stacks.values() for event in stack]
    return durations, open_spans, orphan_ends


def summarize_records(records: Iterable[DecodedRecord]) -> dict[str, Any]:
    provider: dict[str, Any] | None = None
    events: list[dict[str, Any]] = []
    per_category: dict[str, dict[str, int]] = {}
    for record in records:
        if record.kind == "provider":
            provider = dict(record.data)
            continue
        if record.kind not in _EVENT_KINDS:
            continue
        event = {"kind": record.kind, **record.data}
        events.append(event)
        counts = per_category.setdefault(
            record.data["category"], {"instant": 0, "begin": 0, "end": 0}
        )
        counts[record.kind] += 1
    durations, open_spans, orphan_ends = _pair_durations(events)
    return {
        "provider": provider,
        "events": events,
        "per_category": per_category,
        "durations": durations,
        "open_spans": open_spans,
        "orphan_ends": orphan_ends,
    }


def parse_trace_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {**summarize_records([]), "error": None}
    reader = TraceReader()
    records: list[DecodedRecord] = []
    error = None
    try:
        for record in reader.iter_records(path.read_bytes()):
            records.append(record)
    except FtfError as exc:
        # keep what decoded cleanly before the damage
        error = str(exc)
    return {**summarize_records(records), "error": error}
