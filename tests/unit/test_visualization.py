"""Tests for generating images of an existing character."""

from __future__ import annotations

import base64

import pytest

from character_studio.core.auth import Caller
from character_studio.core.errors import Internal, NotFound, PolicyRejected, PreconditionFailed, Unauthenticated
from fakes import FakeImageGenerator

CALLER = Caller(uid="user-1")
PREVIEW = "training-images/user-1/U1/hero.png"


@pytest.fixture
def ready_character(context):
    context.assets.put(PREVIEW, b"reference-bytes")
    c = context.store.create(owner_id=CALLER.uid, preview_ref=PREVIEW)
    context.driver.run(c["id"])
    return context.store.get(c["id"])


def test_combines_reference_image_and_profile(context, image_generator, ready_character) -> None:
    result = context.visualizer.generate(CALLER, ready_character["id"], "on a neon rooftop at night")

    assert result.data == image_generator.data
    assert result.mime_type == "image/png"
    assert base64.b64decode(result.base64_image) == image_generator.data

    (call,) = image_generator.calls
    assert call["reference_image"] == b"reference-bytes"
    assert call["reference_mime_type"] == "image/png"
    assert "Nova" in call["prompt"]
    assert "A starlit wanderer." in call["prompt"]
    assert "on a neon rooftop at night" in call["prompt"]


def test_does_not_mutate_the_record(context, ready_character) -> None:
    context.visualizer.generate(CALLER, ready_character["id"], "beach")

    assert context.store.get(ready_character["id"]) == ready_character


def test_missing_preview_is_a_precondition_failure(context, image_generator) -> None:
    c = context.store.create(owner_id=CALLER.uid, preview_ref=None)

    with pytest.raises(PreconditionFailed):
        context.visualizer.generate(CALLER, c["id"], "beach")

    assert image_generator.calls == []


def test_preview_missing_from_storage_is_a_precondition_failure(context, image_generator) -> None:
    c = context.store.create(owner_id=CALLER.uid, preview_ref="training-images/user-1/gone.png")

    with pytest.raises(PreconditionFailed):
        context.visualizer.generate(CALLER, c["id"], "beach")

    assert image_generator.calls == []


def test_unknown_character(context, image_generator) -> None:
    with pytest.raises(NotFound):
        context.visualizer.generate(CALLER, "missing", "beach")

    assert image_generator.calls == []


def test_requires_caller(context, ready_character) -> None:
    with pytest.raises(Unauthenticated):
        context.visualizer.generate(None, ready_character["id"], "beach")


def test_policy_block_is_reported_distinctly(make_context) -> None:
    context = make_context(image=FakeImageGenerator(blocked_reason="IMAGE_SAFETY"))
    context.assets.put(PREVIEW, b"ref")
    c = context.store.create(owner_id=CALLER.uid, preview_ref=PREVIEW)

    with pytest.raises(PolicyRejected) as info:
        context.visualizer.generate(CALLER, c["id"], "something unsafe")

    assert info.value.details["reason"] == "IMAGE_SAFETY"


def test_no_image_is_internal(make_context) -> None:
    context = make_context(image=FakeImageGenerator(data=None))
    context.assets.put(PREVIEW, b"ref")
    c = context.store.create(owner_id=CALLER.uid, preview_ref=PREVIEW)

    with pytest.raises(Internal) as info:
        context.visualizer.generate(CALLER, c["id"], "beach")

    assert not isinstance(info.value, PolicyRejected)


def test_collaborator_failure_is_internal(make_context) -> None:
    context = make_context(image=FakeImageGenerator(exc=TimeoutError("deadline exceeded")))
    context.assets.put(PREVIEW, b"ref")
    c = context.store.create(owner_id=CALLER.uid, preview_ref=PREVIEW)

    with pytest.raises(Internal):
        context.visualizer.generate(CALLER, c["id"], "beach")


def test_pending_record_uses_placeholder_fields(context, image_generator) -> None:
    context.assets.put(PREVIEW, b"ref")
    c = context.store.create(owner_id=CALLER.uid, preview_ref=PREVIEW)

    context.visualizer.generate(CALLER, c["id"], "beach")

    assert "Processing..." in image_generator.calls[0]["prompt"]
