"""
Fire-and-forget job dispatch.

Submitting returns a Future immediately; the submitter never joins it and a
job's outcome is never re-raised to the submitter. Tests await completion with
`wait_idle()` or `on_complete` hooks instead of sleeping.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Set

from .obs import emit

CompletionHook = Callable[[Future], None]


class JobDispatcher:
    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "lifecycle") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._lock = threading.Lock()
        self._pending: Set[Future] = set()
        self._hooks: List[CompletionHook] = []

    def on_complete(self, hook: CompletionHook) -> None:
        with self._lock:
            self._hooks.append(hook)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        fut = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(self._done)
        return fut

    def _done(self, fut: Future) -> None:
        with self._lock:
            self._pending.discard(fut)
            hooks = list(self._hooks)

        if not fut.cancelled():
            exc = fut.exception()
            if exc is not None:
                emit("error", "jobs.unhandled_exception", str(exc), None, __name__, type=type(exc).__name__)

        for hook in hooks:
            try:
                hook(fut)
            except Exception as e:
                emit("warning", "jobs.hook_failed", str(e), None, __name__, type=type(e).__name__)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every submitted job has finished. Returns False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
