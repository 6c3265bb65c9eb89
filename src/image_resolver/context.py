from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from image_resolver.errors import Cancelled

T = TypeVar("T")


class Context:
    """Cancellation handle for a resolution, optionally with a deadline

    Network calls go through `run()` so that cancelling (from another thread)
    or reaching the deadline returns control to the caller right away instead
    of waiting for the registry to answer. Closers registered while a call is
    in flight are run on cancel."""

    def __init__(self, timeout: float | None = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._closers: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def remaining(self) -> float | None:
        """seconds left before deadline (None if no deadline)"""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def cancel(self):
        self._event.set()
        with self._lock:
            closers, self._closers = self._closers, []
        for closer in closers:
            closer()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise Cancelled("context cancelled")
        if self.expired:
            raise Cancelled("context deadline exceeded")

    def run(self, func: Callable[..., T], *args, **kwargs) -> T:
        """func's result, computed in a worker thread

        Returns (or raises) as soon as func does, or raises Cancelled as soon
        as the context is cancelled or its deadline passes, leaving the worker
        to finish on its own."""
        self.raise_if_cancelled()
        done = threading.Event()
        outcome: dict[str, Any] = {}

        def target():
            try:
                outcome["result"] = func(*args, **kwargs)
            except BaseException as exc:
                outcome["error"] = exc
            finally:
                done.set()

        with self.closing_on_cancel(done.set):
            threading.Thread(target=target, daemon=True).start()
            if not self._event.is_set():
                done.wait(self.remaining)

        if "error" in outcome:
            raise outcome["error"]
        if "result" in outcome:
            return outcome["result"]
        self.raise_if_cancelled()
        raise Cancelled("context cancelled")

    @contextmanager
    def closing_on_cancel(self, closer: Callable[[], None]) -> Iterator[None]:
        """run closer if the context gets cancelled while inside the block"""
        with self._lock:
            self._closers.append(closer)
        try:
            yield
        finally:
            with self._lock:
                if closer in self._closers:
                    self._closers.remove(closer)
