from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class TextResult:
    """
    Result of one text-generation call.

    NOTE:
    - text may be None/empty when the model produced nothing usable.
    - blocked_reason is set when the upstream refused on content-safety
      grounds; callers must treat it as a policy rejection, not as empty text.
    """
    text: Optional[str]
    finish_reason: Optional[str] = None
    blocked_reason: Optional[str] = None


@dataclass(frozen=True)
class ImageResult:
    data: Optional[bytes]
    mime_type: str = "image/png"
    blocked_reason: Optional[str] = None


class TextGenerator(Protocol):
    name: str

    def generate_text(self, *, prompt: str, request_id: Optional[str] = None) -> TextResult:
        ...


class ImageGenerator(Protocol):
    name: str

    def generate_image(
        self,
        *,
        prompt: str,
        reference_image: Optional[bytes] = None,
        reference_mime_type: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ImageResult:
        ...
