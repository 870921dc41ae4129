from __future__ import annotations

import logging
import threading
from typing import BinaryIO

from ftftrace.codec import Record

logger = logging.getLogger(__name__)


class RecordSink:
    """Serializes records onto one binary handle; total order is lock order."""

    def __init__(self, handle: BinaryIO, *, owns_handle: bool = False) -> None:
        self._handle = handle
        self._owns_handle = owns_handle
        self._lock = threading.Lock()
        self._closed = False
        self.records_written = 0

    def emit(self, record: Record) -> bool:
        with self._lock:
            if self._closed:
                return False
            try:
                record.write(self._handle)
            except (OSError, ValueError) as exc:
                # ValueError covers FtfError and writes to a closed handle
                logger.warning("failed to write %s: %s", type(record).__name__, exc)
                return False
            self.records_written += 1
            return True

    def flush(self) -> None:
        with self._lock:
            if self._closed:
                return
            flush = getattr(self._handle, "flush", None)
            if flush is None:
                return
            try:
                flush()
            except OSError as exc:
                logger.warning("failed to flush trace sink: %s", exc)

    def close(self) -> None:
        self.flush()
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._owns_handle:
                try:
                    self._handle.close()
                except OSError as exc:
                    logger.warning("failed to close trace sink: %s", exc)
