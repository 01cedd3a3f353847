"""
Observation channel: per-record publish/subscribe with state sync.

subscribe() registers first and then delivers the current snapshot, so there
is no window in which an update can be missed. Snapshots carry a `revision`;
each subscription delivers strictly increasing revisions only, which hides the
race between the initial read and a concurrent publish.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from character_studio.core.errors import NotFound
from character_studio.core.obs import emit

Snapshot = Dict[str, Any]
Listener = Callable[[Snapshot], None]
Loader = Callable[[str], Optional[Snapshot]]


class Subscription:
    def __init__(self, hub: "ObservationHub", key: str, listener: Listener) -> None:
        self.hub = hub
        self.key = key
        self.listener = listener
        self.initial: Optional[Snapshot] = None
        self._lock = threading.RLock()
        self._last_revision = 0
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    def deliver(self, snapshot: Snapshot) -> bool:
        """Returns True if the listener was called."""
        with self._lock:
            if self._closed:
                return False
            rev = int(snapshot.get("revision") or 0)
            if rev <= self._last_revision:
                return False
            self._last_revision = rev
            if self.initial is None:
                self.initial = snapshot
            # under the lock: deliveries to one listener never interleave
            self.listener(snapshot)
            return True

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.hub._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unsubscribe()


class ObservationHub:
    def __init__(self, loader: Loader) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Subscription]] = {}

    def subscribe(self, key: str, listener: Listener) -> Subscription:
        sub = Subscription(self, key, listener)
        with self._lock:
            self._subs.setdefault(key, []).append(sub)

        try:
            current = self._loader(key)
        except Exception:
            self._remove(sub)
            raise
        if current is None:
            sub.unsubscribe()
            raise NotFound("Character not found.", {"character_id": key})

        # initial is the first snapshot the listener saw, which may be a newer
        # publish that won the race against this read
        self._deliver(sub, current)
        return sub

    def publish(self, key: str, snapshot: Snapshot) -> None:
        with self._lock:
            subs = list(self._subs.get(key, ()))
        for sub in subs:
            self._deliver(sub, snapshot)

    def _deliver(self, sub: Subscription, snapshot: Snapshot) -> None:
        try:
            sub.deliver(snapshot)
        except Exception as e:
            # one broken viewer must not stall the publisher or other viewers
            emit("warning", "observation.listener_failed", str(e), None, __name__, key=sub.key, type=type(e).__name__)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.key)
            if not subs:
                return
            try:
                subs.remove(sub)
            except ValueError:
                pass
            if not subs:
                del self._subs[sub.key]

    def subscriber_count(self, key: str) -> int:
        with self._lock:
            return len(self._subs.get(key, ()))
