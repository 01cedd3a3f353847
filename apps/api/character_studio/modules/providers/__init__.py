from .base import ImageGenerator, ImageResult, TextGenerator, TextResult
from .registry import get_generators

__all__ = ["ImageGenerator", "ImageResult", "TextGenerator", "TextResult", "get_generators"]
