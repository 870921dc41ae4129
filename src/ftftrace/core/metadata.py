from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Hashable


@dataclass(frozen=True, slots=True)
class SpanMetadata:
    captured: bool
    category: str | None = None


class SpanMetadataStore:
    """Span id -> capture decision, written once at span creation."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, SpanMetadata] = {}
        self._lock = threading.Lock()

    def attach(self, span_id: Hashable, metadata: SpanMetadata) -> None:
        with self._lock:
            if span_id in self._entries:
                raise ValueError(f"metadata already attached to span {span_id!r}")
            self._entries[span_id] = metadata

    def get(self, span_id: Hashable | None) -> SpanMetadata | None:
        if span_id is None:
            return None
        with self._lock:
            return self._entries.get(span_id)

    def release(self, span_id: Hashable) -> SpanMetadata | None:
        with self._lock:
            return self._entries.pop(span_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
