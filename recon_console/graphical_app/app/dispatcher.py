"""Marshalling of worker-thread messages onto the UI thread."""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable


class UiDispatcher:
    """Worker threads ``post`` callables; the UI loop runs them in ``drain``."""

    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[tuple[Callable[..., Any], tuple[Any, ...]]]" = queue.SimpleQueue()
        self._ui_thread = threading.get_ident()

    def bind_to_current_thread(self) -> None:
        self._ui_thread = threading.get_ident()

    def on_ui_thread(self) -> bool:
        return threading.get_ident() == self._ui_thread

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    def pending(self) -> bool:
        return not self._queue.empty()

    def drain(self, limit: int | None = None) -> int:
        processed = 0
        while limit is None or processed < limit:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                break
            fn(*args)
            processed += 1
        return processed
