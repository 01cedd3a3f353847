"""Tests for the per-record observation hub."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from character_studio.core.errors import NotFound
from character_studio.modules.characters.events import ObservationHub


def _snap(revision: int, status: str) -> Dict[str, Any]:
    return {"id": "c1", "revision": revision, "status": status}


class _Records:
    def __init__(self) -> None:
        self.current: Dict[str, Dict[str, Any]] = {"c1": _snap(1, "pending")}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        return self.current.get(key)


def test_subscribe_delivers_current_state_synchronously() -> None:
    records = _Records()
    hub = ObservationHub(records.load)
    seen: List[Dict[str, Any]] = []

    sub = hub.subscribe("c1", seen.append)

    assert seen == [_snap(1, "pending")]
    assert sub.initial == _snap(1, "pending")
    assert hub.subscriber_count("c1") == 1


def test_publish_reaches_every_subscriber_of_the_key_only() -> None:
    records = _Records()
    records.current["c2"] = {"id": "c2", "revision": 1, "status": "pending"}
    hub = ObservationHub(records.load)
    a: List[Dict[str, Any]] = []
    b: List[Dict[str, Any]] = []
    other: List[Dict[str, Any]] = []
    hub.subscribe("c1", a.append)
    hub.subscribe("c1", b.append)
    hub.subscribe("c2", other.append)

    hub.publish("c1", _snap(2, "training"))

    assert [s["status"] for s in a] == ["pending", "training"]
    assert [s["status"] for s in b] == ["pending", "training"]
    assert [s["status"] for s in other] == ["pending"]


def test_stale_and_duplicate_revisions_are_dropped() -> None:
    hub = ObservationHub(_Records().load)
    seen: List[Dict[str, Any]] = []
    hub.subscribe("c1", seen.append)

    hub.publish("c1", _snap(3, "ready"))
    hub.publish("c1", _snap(2, "training"))
    hub.publish("c1", _snap(3, "ready"))

    assert [s["revision"] for s in seen] == [1, 3]


def test_initial_read_racing_a_publish_never_regresses() -> None:
    hub: ObservationHub

    def loader(key: str) -> Dict[str, Any]:
        # a newer state is published while the initial read is in flight
        hub.publish(key, _snap(2, "training"))
        return _snap(1, "pending")

    hub = ObservationHub(loader)
    seen: List[Dict[str, Any]] = []

    sub = hub.subscribe("c1", seen.append)

    assert [s["status"] for s in seen] == ["training"]
    assert sub.initial == _snap(2, "training")


def test_unsubscribe_is_idempotent() -> None:
    hub = ObservationHub(_Records().load)
    seen: List[Dict[str, Any]] = []
    sub = hub.subscribe("c1", seen.append)

    sub.unsubscribe()
    sub.unsubscribe()
    hub.publish("c1", _snap(2, "training"))

    assert hub.subscriber_count("c1") == 0
    assert not sub.active
    assert [s["revision"] for s in seen] == [1]


def test_context_manager_unsubscribes() -> None:
    hub = ObservationHub(_Records().load)

    with hub.subscribe("c1", lambda s: None):
        assert hub.subscriber_count("c1") == 1

    assert hub.subscriber_count("c1") == 0


def test_unknown_key_raises_not_found_and_registers_nothing() -> None:
    hub = ObservationHub(_Records().load)

    with pytest.raises(NotFound):
        hub.subscribe("missing", lambda s: None)

    assert hub.subscriber_count("missing") == 0


def test_failing_listener_does_not_affect_others() -> None:
    hub = ObservationHub(_Records().load)
    seen: List[Dict[str, Any]] = []

    def broken(_: Dict[str, Any]) -> None:
        raise RuntimeError("viewer crashed")

    hub.subscribe("c1", broken)
    hub.subscribe("c1", seen.append)
    hub.publish("c1", _snap(2, "training"))

    assert [s["status"] for s in seen] == ["pending", "training"]
