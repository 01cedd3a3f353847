"""
Gemini collaborators (google-genai).

Either an API key (GEMINI_API_KEY) or Vertex AI (GOOGLE_CLOUD_PROJECT +
GOOGLE_CLOUD_LOCATION, application default credentials) is used. Every call
carries the configured HTTP timeout so a stalled upstream surfaces as an
exception instead of a hang.
"""
from __future__ import annotations

from typing import Any, List, Optional

from google import genai
from google.genai import types as genai_types

from character_studio.core.config import Settings

from .base import ImageResult, TextResult

# finish reasons that mean "refused on content grounds"
POLICY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY", "IMAGE_PROHIBITED_CONTENT"}


def build_client(settings: Settings) -> genai.Client:
    http_options = genai_types.HttpOptions(timeout=int(settings.generation_timeout_seconds * 1000))
    if settings.gemini_api_key:
        return genai.Client(api_key=settings.gemini_api_key, http_options=http_options)
    if settings.google_cloud_project:
        return genai.Client(
            vertexai=True,
            project=settings.google_cloud_project,
            location=settings.google_cloud_location,
            http_options=http_options,
        )
    raise RuntimeError("Set GEMINI_API_KEY or GOOGLE_CLOUD_PROJECT to use the gemini provider.")


def _enum_name(v: Any) -> Optional[str]:
    if v is None:
        return None
    name = getattr(v, "name", None)
    return str(name) if name else str(v)


def blocked_reason(response: genai_types.GenerateContentResponse) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return _enum_name(feedback.block_reason)
    for candidate in getattr(response, "candidates", None) or []:
        reason = _enum_name(getattr(candidate, "finish_reason", None))
        if reason in POLICY_FINISH_REASONS:
            return reason
    return None


def _first_finish_reason(response: genai_types.GenerateContentResponse) -> Optional[str]:
    for candidate in getattr(response, "candidates", None) or []:
        return _enum_name(getattr(candidate, "finish_reason", None))
    return None


def _parts(response: genai_types.GenerateContentResponse) -> List[genai_types.Part]:
    out: List[genai_types.Part] = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if content is None or not content.parts:
            continue
        out.extend(content.parts)
    return out


class GeminiTextGenerator:
    name = "gemini"

    def __init__(self, client: genai.Client, model: str) -> None:
        self.client = client
        self.model = model

    def generate_text(self, *, prompt: str, request_id: Optional[str] = None) -> TextResult:
        response = self.client.models.generate_content(
            model=self.model,
            contents=[genai_types.Content(role="user", parts=[genai_types.Part(text=prompt)])],
        )
        reason = blocked_reason(response)
        if reason:
            return TextResult(text=None, finish_reason=_first_finish_reason(response), blocked_reason=reason)

        texts = [p.text for p in _parts(response) if getattr(p, "text", None)]
        return TextResult(text="\n".join(texts).strip() or None, finish_reason=_first_finish_reason(response))


class GeminiImageGenerator:
    name = "gemini"

    def __init__(self, client: genai.Client, model: str) -> None:
        self.client = client
        self.model = model

    def generate_image(
        self,
        *,
        prompt: str,
        reference_image: Optional[bytes] = None,
        reference_mime_type: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ImageResult:
        parts: List[genai_types.Part] = [genai_types.Part(text=prompt)]
        if reference_image:
            parts.append(
                genai_types.Part(
                    inline_data=genai_types.Blob(
                        mime_type=reference_mime_type or "image/png",
                        data=reference_image,
                    )
                )
            )

        response = self.client.models.generate_content(
            model=self.model,
            contents=[genai_types.Content(role="user", parts=parts)],
            config=genai_types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                candidate_count=1,
            ),
        )
        reason = blocked_reason(response)
        if reason:
            return ImageResult(data=None, blocked_reason=reason)

        for part in _parts(response):
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return ImageResult(data=inline.data, mime_type=inline.mime_type or "image/png")
        return ImageResult(data=None)
