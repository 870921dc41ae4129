from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Callable, Hashable, Sequence

from ftftrace.codec import (
    Argument,
    EventRecord,
    StringRef,
    ThreadRef,
    create_duration_begin_event,
    create_duration_end_event,
    create_initialization,
    create_instant_event,
    create_magic_number,
    create_provider_info,
    fit_event,
)
from ftftrace.codec.records import MAX_ARGUMENTS
from ftftrace.config import FtfLayerConfig

from .clock import Clock
from .fields import Fields, argument_strings, field_values, to_argument
from .filter import CaptureFilter
from .interning import StringTable, ThreadTable, string_refs, thread_ref
from .metadata import SpanMetadataStore
from .sink import RecordSink
from .threads import ThreadIdentityRegistry

logger = logging.getLogger(__name__)


def _duration_end(
    timestamp: int,
    thread: ThreadRef,
    category: StringRef,
    name: StringRef,
    arguments: Sequence[Argument],
) -> EventRecord:
    # end records never carry arguments
    return create_duration_end_event(timestamp, thread, category, name)


class FtfLayer:
    """Turns opted-in spans and events into Fuchsia Trace Format records.

    Hooks are called by the host span registry:

    - ``on_new_span(name, fields, span_id)`` when a span is created,
    - ``on_close(span_id, name)`` when it closes,
    - ``on_event(name, fields, parent_id)`` for each event, ``parent_id``
      being the innermost active span or None.

    Write failures never escape a hook; they are logged and the record is
    dropped, or the value is inlined when interning fails.
    """

    def __init__(
        self,
        handle: BinaryIO,
        config: FtfLayerConfig | None = None,
        *,
        owns_handle: bool = False,
    ) -> None:
        self.config = config or FtfLayerConfig()
        self.clock = Clock()
        self.sink = RecordSink(handle, owns_handle=owns_handle)
        self.sink.emit(create_magic_number())
        self.sink.emit(
            create_provider_info(self.config.provider_id, self.config.provider_name)
        )
        self.sink.emit(create_initialization())
        self.strings = StringTable(self.sink)
        self.threads = ThreadTable(self.sink)
        self.identities = ThreadIdentityRegistry(self.config.process_id)
        self.filter = CaptureFilter(
            capture_field=self.config.capture_field,
            category_field=self.config.category_field,
            default_category=self.config.default_category,
        )
        self.spans = SpanMetadataStore()

    @classmethod
    def open(cls, path: Path, config: FtfLayerConfig | None = None) -> "FtfLayer":
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = path.open("wb")
        return cls(handle, config, owns_handle=True)

    def _emit(
        self,
        build: Callable[..., EventRecord],
        category: str,
        name: str,
        fields: Fields | None,
    ) -> None:
        values = field_values(fields) if fields else []
        if len(values) > MAX_ARGUMENTS:
            dropped = [key for key, _ in values[MAX_ARGUMENTS:]]
            logger.debug("dropping fields beyond %d arguments: %s", MAX_ARGUMENTS, dropped)
            values = values[:MAX_ARGUMENTS]
        wanted = list(dict.fromkeys([category, name, *argument_strings(values)]))
        process_koid, thread_koid = self.identities.current()
        # lock order: strings, threads, sink; ids stay pinned until the record is written
        with self.strings.batch() as strings, self.threads.batch() as threads:
            refs = dict(zip(wanted, string_refs(strings, wanted)))
            thread = thread_ref(threads, process_koid, thread_koid)
            arguments = [to_argument(key, value, refs.__getitem__) for key, value in values]
            record = build(self.clock.now(), thread, refs[category], refs[name], arguments)
            fitted = fit_event(record)
            if fitted is not record:
                logger.debug("shortened inline strings of oversized %r record", name[:64])
            self.sink.emit(fitted)

    def on_new_span(self, name: str, fields: Fields, span_id: Hashable) -> None:
        metadata = self.filter.decide_span(fields)
        self.spans.attach(span_id, metadata)
        if not metadata.captured:
            return
        self._emit(
            create_duration_begin_event, self.filter.span_category(metadata), name, fields
        )

    def on_close(self, span_id: Hashable, name: str) -> None:
        metadata = self.spans.release(span_id)
        if metadata is None or not metadata.captured:
            return
        self._emit(_duration_end, self.filter.span_category(metadata), name, None)

    def on_event(self, name: str, fields: Fields, parent_id: Hashable | None = None) -> None:
        decision = self.filter.decide_event(fields, self.spans.get(parent_id))
        if not decision.captured:
            return
        self._emit(create_instant_event, decision.category, name, fields)

    def flush(self) -> None:
        self.sink.flush()

    def close(self) -> None:
        self.sink.close()

    def __enter__(self) -> "FtfLayer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"FtfLayer(provider={self.config.provider_name!r})"
