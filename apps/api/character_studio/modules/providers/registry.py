from __future__ import annotations

from typing import Tuple

from character_studio.core.config import Settings

from .base import ImageGenerator, TextGenerator
from .mock_provider import MockImageGenerator, MockTextGenerator

PROVIDERS = ("mock", "gemini")


def get_generators(settings: Settings) -> Tuple[TextGenerator, ImageGenerator]:
    """
    Registry entry point, routed by GENERATION_PROVIDER.
    The gemini client is built once here and shared by both generators.
    """
    name = settings.generation_provider
    if name == "mock":
        return MockTextGenerator(), MockImageGenerator()
    if name == "gemini":
        from .gemini_provider import GeminiImageGenerator, GeminiTextGenerator, build_client

        client = build_client(settings)
        return (
            GeminiTextGenerator(client, settings.text_model),
            GeminiImageGenerator(client, settings.image_model),
        )
    raise ValueError(f"Unknown GENERATION_PROVIDER={name!r}; expected one of {', '.join(PROVIDERS)}")
