"""Fuchsia Trace Format record codec."""

from .reader import DecodedRecord, TraceReader, read_records, read_trace_file
from .records import (
    EventRecord,
    Record,
    create_duration_begin_event,
    create_duration_end_event,
    create_initialization,
    create_instant_event,
    create_magic_number,
    create_provider_info,
    create_string,
    create_thread,
    fit_event,
)
from .refs import (
    Argument,
    BoolArg,
    FloatArg,
    FtfError,
    Int64Arg,
    StrArg,
    StringRef,
    ThreadRef,
    UInt64Arg,
)

__all__ = [
    "Argument",
    "BoolArg",
    "DecodedRecord",
    "EventRecord",
    "FloatArg",
    "FtfError",
    "Int64Arg",
    "Record",
    "StrArg",
    "StringRef",
    "ThreadRef",
    "TraceReader",
    "UInt64Arg",
    "create_duration_begin_event",
    "create_duration_end_event",
    "create_initialization",
    "create_instant_event",
    "create_magic_number",
    "create_provider_info",
    "create_string",
    "create_thread",
    "fit_event",
    "read_records",
    "read_trace_file",
]
