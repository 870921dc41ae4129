"""Capture filtering, interning and ordered record emission."""

from .clock import Clock
from .fields import FieldKind, FieldValue
from .filter import CaptureDecision, CaptureFilter
from .interning import InternTable, StringTable, ThreadTable
from .layer import FtfLayer
from .metadata import SpanMetadata, SpanMetadataStore
from .sink import RecordSink
from .threads import ThreadIdentityRegistry

__all__ = [
    "CaptureDecision",
    "CaptureFilter",
    "Clock",
    "FieldKind",
    "FieldValue",
    "FtfLayer",
    "InternTable",
    "RecordSink",
    "SpanMetadata",
    "SpanMetadataStore",
    "StringTable",
    "ThreadIdentityRegistry",
    "ThreadTable",
]
