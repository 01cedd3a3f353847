from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional

from .base import ImageResult, TextResult

# 1x1 transparent PNG
_PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

BLOCK_MARKER = "__blocked__"


class MockTextGenerator:
    """
    Offline text provider for local runs and gates:
    - answers the analysis prompt with a stable JSON payload wrapped in prose
    - prompts containing BLOCK_MARKER come back safety-blocked
    """
    name = "mock"

    def __init__(self, payload: Optional[Dict[str, Any]] = None) -> None:
        self.payload = payload or {
            "characterName": "Mock Hero",
            "description": "A steady, good-natured hero generated offline for local testing.",
            "keywords": ["mock", "steady", "friendly", "local", "hero"],
        }

    def generate_text(self, *, prompt: str, request_id: Optional[str] = None) -> TextResult:
        if BLOCK_MARKER in prompt:
            return TextResult(text=None, finish_reason="SAFETY", blocked_reason="SAFETY")
        body = json.dumps(self.payload, ensure_ascii=False)
        return TextResult(text=f"Here is the character:\n{body}\n", finish_reason="STOP")


class MockImageGenerator:
    """Returns a fixed placeholder PNG; BLOCK_MARKER in the prompt yields a policy block."""
    name = "mock"

    def generate_image(
        self,
        *,
        prompt: str,
        reference_image: Optional[bytes] = None,
        reference_mime_type: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ImageResult:
        if BLOCK_MARKER in prompt:
            return ImageResult(data=None, blocked_reason="IMAGE_SAFETY")
        return ImageResult(data=_PLACEHOLDER_PNG, mime_type="image/png")
