from __future__ import annotations

import itertools
import os
import threading


class ThreadIdentityRegistry:
    """Assigns sequential thread koids, first observation wins.

    Keyed by ``threading.get_ident()``; the interpreter may recycle an ident
    after its thread exits, in which case the new thread inherits the koid.
    """

    def __init__(self, process_id: int | None = None) -> None:
        self.process_id = process_id if process_id is not None else os.getpid()
        self._ids: dict[int, int] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def current(self) -> tuple[int, int]:
        ident = threading.get_ident()
        with self._lock:
            koid = self._ids.get(ident)
            if koid is None:
                koid = next(self._counter)
                self._ids[ident] = koid
        return self.process_id, koid
