from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from character_studio.core.auth import Caller, require_caller
from character_studio.core.dispatch import JobDispatcher
from character_studio.core.errors import Internal, NotFound, PolicyRejected, PreconditionFailed, ServiceError
from character_studio.core.ids import new_ulid
from character_studio.core.obs import emit
from character_studio.core.storage import AssetNotFound, LocalAssetStore
from character_studio.modules.providers import ImageGenerator, TextGenerator

from .parsing import extract_character_profile
from .store import ERROR, READY, TRAINING, CharacterStore

ANALYSIS_PROMPT = """
Analyze a character. Generate a JSON object with:
1. 'characterName': A cool, creative name.
2. 'description': A brief, descriptive paragraph.
3. 'keywords': An array of 5 relevant string keywords.

Respond only with the valid JSON object.
""".strip()

MODEL_REF_PREFIX = "simulated-adapter-"


def build_visualization_prompt(character: Dict[str, Any], scene: str) -> str:
    return (
        f"The attached image shows a character named {character.get('display_name') or 'the character'}"
        f", described as: {character.get('description') or 'no description yet'}.\n"
        f'Place this character in the following scene: "{scene.strip()}".\n'
        "Keep the character's face, build and outfit consistent with the reference image."
    )


# -------------------------
# Lifecycle driver
# -------------------------
class LifecycleDriver:
    """
    Runs one record through pending -> training -> ready|error.

    Runs detached from any request, so the record's status is the only failure
    channel: every exception ends in the error transition, nothing is raised.
    """

    def __init__(
        self,
        store: CharacterStore,
        text_generator: TextGenerator,
        *,
        delay_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.text_generator = text_generator
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    def run(self, character_id: str, request_id: Optional[str] = None) -> str:
        try:
            self.store.transition(character_id, TRAINING)
            emit("info", "character.transition", "pending -> training", request_id, __name__, character_id=character_id)

            if self.delay_seconds > 0:
                self.sleep(self.delay_seconds)

            result = self.text_generator.generate_text(prompt=ANALYSIS_PROMPT, request_id=request_id)
            if result.blocked_reason:
                raise PolicyRejected(
                    "character analysis was blocked by safety filters",
                    {"reason": result.blocked_reason},
                )

            profile = extract_character_profile(result.text)
            if profile.is_fallback:
                emit(
                    "warning",
                    "character.profile.fallback",
                    "could not use model output, substituting fallback values",
                    request_id,
                    __name__,
                    character_id=character_id,
                    fields=list(profile.fallback_fields),
                )

            self.store.transition(
                character_id,
                READY,
                display_name=profile.name,
                description=profile.description,
                keywords=list(profile.keywords),
                model_ref=f"{MODEL_REF_PREFIX}{new_ulid()}",
            )
            emit("info", "character.transition", "training -> ready", request_id, __name__, character_id=character_id)
            return READY
        except Exception as e:
            emit(
                "error",
                "character.lifecycle.failed",
                str(e),
                request_id,
                __name__,
                character_id=character_id,
                type=type(e).__name__,
            )
            return self._fail(character_id, request_id)

    def _fail(self, character_id: str, request_id: Optional[str]) -> str:
        try:
            self.store.transition(character_id, ERROR)
        except Exception as e:
            # record stays where it was (pending/training); nothing left to report to
            emit(
                "error",
                "character.lifecycle.error_commit_failed",
                str(e),
                request_id,
                __name__,
                character_id=character_id,
                type=type(e).__name__,
            )
            current = self.store.get(character_id)
            return str(current["status"]) if current else ERROR
        emit("info", "character.transition", "training -> error", request_id, __name__, character_id=character_id)
        return ERROR


# -------------------------
# Job submitter
# -------------------------
class JobSubmitter:
    def __init__(self, store: CharacterStore, driver: LifecycleDriver, dispatcher: JobDispatcher) -> None:
        self.store = store
        self.driver = driver
        self.dispatcher = dispatcher

    def start_character_tuning(
        self,
        caller: Optional[Caller],
        files: Sequence[str],
        request_id: Optional[str] = None,
    ) -> str:
        """Create a pending record and start its lifecycle without waiting. Returns the record id."""
        caller = require_caller(caller)
        preview_ref = files[0] if files else None

        character = self.store.create(owner_id=caller.uid, preview_ref=preview_ref)
        character_id = str(character["id"])
        emit(
            "info",
            "character.created",
            "character created",
            request_id,
            __name__,
            character_id=character_id,
            files=len(files),
        )

        self.dispatcher.submit(self.driver.run, character_id, request_id)
        return character_id


def list_library(store: CharacterStore, caller: Optional[Caller], limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
    caller = require_caller(caller)
    return store.list_by_owner(caller.uid, limit=limit, offset=offset)


# -------------------------
# Visualization
# -------------------------
@dataclass(frozen=True)
class Visualization:
    data: bytes
    mime_type: str

    @property
    def base64_image(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class VisualizationService:
    """Read-only against the record; safe to run concurrently with a lifecycle run."""

    def __init__(self, store: CharacterStore, assets: LocalAssetStore, image_generator: ImageGenerator) -> None:
        self.store = store
        self.assets = assets
        self.image_generator = image_generator

    def generate(
        self,
        caller: Optional[Caller],
        character_id: str,
        prompt: str,
        request_id: Optional[str] = None,
    ) -> Visualization:
        require_caller(caller)

        character = self.store.get(character_id)
        if character is None:
            raise NotFound("Character not found.", {"character_id": character_id})

        preview_ref = character.get("preview_ref")
        if not preview_ref:
            raise PreconditionFailed("Character has no preview image.", {"character_id": character_id})
        try:
            image_bytes, mime_type = self.assets.get(preview_ref)
        except AssetNotFound:
            raise PreconditionFailed("Character preview image is missing from storage.", {"character_id": character_id})

        try:
            result = self.image_generator.generate_image(
                prompt=build_visualization_prompt(character, prompt),
                reference_image=image_bytes,
                reference_mime_type=mime_type,
                request_id=request_id,
            )
        except ServiceError:
            raise
        except Exception as e:
            raise Internal("Image generation failed.", {"type": type(e).__name__}) from e

        if result.blocked_reason:
            emit(
                "warning",
                "visualization.rejected",
                "image generation blocked",
                request_id,
                __name__,
                character_id=character_id,
                reason=result.blocked_reason,
            )
            raise PolicyRejected(
                "The request was blocked by content filters. Try rephrasing the scene.",
                {"reason": result.blocked_reason},
            )
        if not result.data:
            raise Internal("The AI model failed to generate an image.", {"character_id": character_id})

        return Visualization(data=result.data, mime_type=result.mime_type or "image/png")
