"""Single-threaded job queue that serializes session state changes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from queue import Queue
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

_Job = Tuple["Future[Any]", Callable[..., Any], Tuple[Any, ...]]


class SerialDispatcher:
    """Runs submitted callables one at a time on a dedicated worker thread.

    Any thread may submit. Jobs run in submission order and never interleave,
    so state owned by the dispatcher needs no further locking.
    """

    def __init__(self, name: str = "session-dispatcher") -> None:
        self._queue: Queue[_Job | None] = Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)
        self._thread.start()

    def in_dispatcher(self) -> bool:
        return threading.current_thread() is self._thread

    def submit(self, fn: Callable[..., Any], *args: Any) -> "Future[Any]":
        future: Future[Any] = Future()
        with self._lock:
            if self._closed:
                future.cancel()
                return future
            self._queue.put((future, fn, args))
        return future

    def call(self, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None) -> Any:
        """Run ``fn`` on the dispatcher and wait for its result."""
        if self.in_dispatcher():
            return fn(*args)
        future = self.submit(fn, *args)
        if future.cancelled():
            return None
        return future.result(timeout=timeout)

    def shutdown(self, timeout: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(None)
        if not self.in_dispatcher():
            self._thread.join(timeout=timeout)

    def _worker(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:  # Sentinel
                return
            future, fn, args = job
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args)
            except Exception as exc:
                logger.exception("Dispatcher job %s failed", getattr(fn, "__name__", fn))
                future.set_exception(exc)
            else:
                future.set_result(result)
