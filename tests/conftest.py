"""Shared fixtures: isolated sqlite/storage per test and scriptable generation collaborators."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from character_studio.context import AppContext, build_context
from character_studio.core.config import Settings
from fakes import FakeImageGenerator, FakeTextGenerator


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "ai: real API tests that may cost money")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.getenv("RUN_AI_TESTS") == "1":
        return

    skip_marker = pytest.mark.skip(reason="Set RUN_AI_TESTS=1 to run AI integration tests.")
    for item in items:
        if "ai" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{(tmp_path / 'app.db').as_posix()}",
        storage_root=str(tmp_path / "storage"),
        training_delay_seconds=0.0,
        job_max_workers=2,
        events_keepalive_seconds=0.05,
    )


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def make_context(settings: Settings):
    built: List[AppContext] = []

    def _make(
        text: Optional[FakeTextGenerator] = None,
        image: Optional[FakeImageGenerator] = None,
        *,
        sleep: Optional[Callable[[float], None]] = None,
        **overrides,
    ) -> AppContext:
        kwargs = {}
        if sleep is not None:
            kwargs["sleep"] = sleep
        ctx = build_context(
            settings.with_overrides(**overrides) if overrides else settings,
            text_generator=text or FakeTextGenerator(),
            image_generator=image or FakeImageGenerator(),
            **kwargs,
        )
        built.append(ctx)
        return ctx

    yield _make

    for ctx in built:
        ctx.dispatcher.wait_idle(timeout=10)
        ctx.close(wait=True)


@pytest.fixture
def context(make_context, text_generator, image_generator) -> AppContext:
    return make_context(text_generator, image_generator)
