"""
Process configuration.

Everything is read from the environment once, at process entry, into a frozen
Settings object that is passed to every component (no module-level clients).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db
- STORAGE_ROOT: ./data/storage
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

# SSE keep-alive floor: 0 would spin, negatives are rejected by queue.get
MIN_KEEPALIVE_SECONDS = 0.05


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    app_version: str = "0.1.0"
    database_url: str = "sqlite:///./data/app.db"
    storage_root: str = "./data/storage"
    log_level: str = "INFO"

    # generation collaborators: mock|gemini
    generation_provider: str = "mock"
    gemini_api_key: Optional[str] = None
    google_cloud_project: Optional[str] = None
    google_cloud_location: str = "us-central1"
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    generation_timeout_seconds: float = 120.0

    # lifecycle
    training_delay_seconds: float = 5.0
    job_max_workers: int = 4

    # observation feed
    events_keepalive_seconds: float = 15.0

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    e = os.environ if env is None else env
    return Settings(
        app_version=e.get("APP_VERSION", "0.1.0"),
        database_url=e.get("DATABASE_URL", "sqlite:///./data/app.db"),
        storage_root=e.get("STORAGE_ROOT", "./data/storage"),
        log_level=e.get("LOG_LEVEL", "INFO"),
        generation_provider=(e.get("GENERATION_PROVIDER") or "mock").strip().lower(),
        gemini_api_key=e.get("GEMINI_API_KEY") or None,
        google_cloud_project=e.get("GOOGLE_CLOUD_PROJECT") or None,
        google_cloud_location=e.get("GOOGLE_CLOUD_LOCATION", "us-central1"),
        text_model=e.get("TEXT_MODEL", "gemini-2.5-flash"),
        image_model=e.get("IMAGE_MODEL", "gemini-2.5-flash-image"),
        generation_timeout_seconds=_env_float(e, "GENERATION_TIMEOUT_SECONDS", 120.0),
        training_delay_seconds=_env_float(e, "TRAINING_DELAY_SECONDS", 5.0),
        job_max_workers=max(_env_int(e, "JOB_MAX_WORKERS", 4), 1),
        events_keepalive_seconds=max(_env_float(e, "EVENTS_KEEPALIVE_SECONDS", 15.0), MIN_KEEPALIVE_SECONDS),
    )
