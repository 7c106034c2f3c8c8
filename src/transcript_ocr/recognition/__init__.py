"""Text recognition engines and cell text post-processing."""

from .engine import RecognitionEngine, TesseractEngine
from .text import cleanup_text, parse_number

__all__ = [
    "RecognitionEngine",
    "TesseractEngine",
    "cleanup_text",
    "parse_number",
]
