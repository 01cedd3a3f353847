"""Tests for the sqlite character store and its transition guard."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest

from character_studio.core.db import init_db
from character_studio.core.errors import Internal, InvalidTransition, NotFound
from character_studio.modules.characters.store import (
    ERROR,
    PENDING,
    PLACEHOLDER_NAME,
    READY,
    TRAINING,
    CharacterStore,
)

PROFILE = dict(display_name="Nova", description="desc", keywords=["a", "b"], model_ref="simulated-adapter-X")


@pytest.fixture
def store(settings) -> CharacterStore:
    init_db(settings.database_url)
    return CharacterStore(settings.database_url)


def test_create_sets_pending_placeholders(store: CharacterStore) -> None:
    c = store.create(owner_id="u1", preview_ref="training-images/u1/x/a.png")

    assert c["status"] == PENDING
    assert c["owner_id"] == "u1"
    assert c["display_name"] == PLACEHOLDER_NAME
    assert c["description"] == ""
    assert c["keywords"] == []
    assert c["model_ref"] is None
    assert c["preview_ref"] == "training-images/u1/x/a.png"
    assert c["revision"] == 1
    assert c["created_at"]
    assert store.get(c["id"]) == c


def test_forward_transitions_bump_revision(store: CharacterStore) -> None:
    c = store.create(owner_id="u1", preview_ref=None)

    t = store.transition(c["id"], TRAINING)
    r = store.transition(c["id"], READY, **PROFILE)

    assert (t["status"], t["revision"]) == (TRAINING, 2)
    assert t["display_name"] == PLACEHOLDER_NAME
    assert (r["status"], r["revision"]) == (READY, 3)
    assert r["display_name"] == "Nova"
    assert r["keywords"] == ["a", "b"]
    assert r["model_ref"] == "simulated-adapter-X"
    assert r["created_at"] == c["created_at"]
    assert r["preview_ref"] is None


@pytest.mark.parametrize(
    "path, target",
    [
        ((), READY),
        ((), ERROR),
        ((TRAINING,), TRAINING),
        ((TRAINING, READY), TRAINING),
        ((TRAINING, READY), ERROR),
        ((TRAINING, ERROR), READY),
        ((TRAINING, ERROR), TRAINING),
        ((), PENDING),
    ],
)
def test_illegal_transitions_commit_nothing(store: CharacterStore, path: Tuple[str, ...], target: str) -> None:
    c = store.create(owner_id="u1", preview_ref=None)
    for step in path:
        store.transition(c["id"], step, **(PROFILE if step == READY else {}))
    before = store.get(c["id"])

    with pytest.raises(InvalidTransition):
        store.transition(c["id"], target, **(PROFILE if target == READY else {}))

    assert store.get(c["id"]) == before


def test_ready_requires_every_profile_field(store: CharacterStore) -> None:
    c = store.create(owner_id="u1", preview_ref=None)
    store.transition(c["id"], TRAINING)

    with pytest.raises(InvalidTransition):
        store.transition(c["id"], READY, display_name="Nova", description="d", keywords=["a"])

    assert store.get(c["id"])["status"] == TRAINING


def test_profile_fields_rejected_outside_ready_edge(store: CharacterStore) -> None:
    c = store.create(owner_id="u1", preview_ref=None)

    with pytest.raises(InvalidTransition):
        store.transition(c["id"], TRAINING, display_name="Sneaky")

    assert store.get(c["id"])["display_name"] == PLACEHOLDER_NAME


def test_unknown_record(store: CharacterStore) -> None:
    assert store.get("nope") is None
    with pytest.raises(NotFound):
        store.require("nope")
    with pytest.raises(NotFound):
        store.transition("nope", TRAINING)


def test_list_by_owner_is_scoped_and_paged(store: CharacterStore) -> None:
    mine = [store.create(owner_id="u1", preview_ref=None)["id"] for _ in range(3)]
    store.create(owner_id="u2", preview_ref=None)

    items, total = store.list_by_owner("u1", limit=2, offset=0)
    rest, _ = store.list_by_owner("u1", limit=2, offset=2)

    assert total == 3
    assert len(items) == 2
    assert {c["id"] for c in items + rest} == set(mine)
    assert all(c["owner_id"] == "u1" for c in items + rest)


def test_observer_sees_committed_snapshots(store: CharacterStore) -> None:
    seen: List[Tuple[str, Dict[str, Any]]] = []

    def observer(key: str, snapshot: Dict[str, Any]) -> None:
        # the snapshot handed over must already be readable from the store
        assert store.get(key) == snapshot
        seen.append((key, snapshot))

    store.observer = observer
    c = store.create(owner_id="u1", preview_ref=None)
    store.transition(c["id"], TRAINING)

    assert [(k, s["status"]) for k, s in seen] == [(c["id"], PENDING), (c["id"], TRAINING)]


def test_write_whose_row_cannot_be_read_back_is_internal(settings) -> None:
    class _LosingStore(CharacterStore):
        def _get(self, conn, character_id):
            return None

    init_db(settings.database_url)
    seen: List[Dict[str, Any]] = []
    store = _LosingStore(settings.database_url, observer=lambda key, c: seen.append(c))

    with pytest.raises(Internal):
        store.create(owner_id="u1", preview_ref=None)
    assert seen == []
