"""
Process wiring.

One AppContext is built at process entry and handed to the FastAPI app (and
to tests); components receive what they need through their constructors.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from character_studio.core.config import Settings
from character_studio.core.db import init_db
from character_studio.core.dispatch import JobDispatcher
from character_studio.core.obs import configure_logging
from character_studio.core.storage import LocalAssetStore
from character_studio.modules.characters.events import ObservationHub
from character_studio.modules.characters.service import JobSubmitter, LifecycleDriver, VisualizationService
from character_studio.modules.characters.store import CharacterStore
from character_studio.modules.providers import ImageGenerator, TextGenerator, get_generators


@dataclass
class AppContext:
    settings: Settings
    store: CharacterStore
    hub: ObservationHub
    assets: LocalAssetStore
    dispatcher: JobDispatcher
    driver: LifecycleDriver
    submitter: JobSubmitter
    visualizer: VisualizationService

    def close(self, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait)


def build_context(
    settings: Settings,
    *,
    text_generator: Optional[TextGenerator] = None,
    image_generator: Optional[ImageGenerator] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AppContext:
    configure_logging(settings.log_level)
    init_db(settings.database_url)

    if text_generator is None or image_generator is None:
        default_text, default_image = get_generators(settings)
        text_generator = text_generator or default_text
        image_generator = image_generator or default_image

    store = CharacterStore(settings.database_url)
    hub = ObservationHub(loader=store.get)
    store.observer = hub.publish

    assets = LocalAssetStore(settings.storage_root)
    assets.ensure_root()

    dispatcher = JobDispatcher(max_workers=settings.job_max_workers)
    driver = LifecycleDriver(store, text_generator, delay_seconds=settings.training_delay_seconds, sleep=sleep)

    return AppContext(
        settings=settings,
        store=store,
        hub=hub,
        assets=assets,
        dispatcher=dispatcher,
        driver=driver,
        submitter=JobSubmitter(store, driver, dispatcher),
        visualizer=VisualizationService(store, assets, image_generator),
    )
