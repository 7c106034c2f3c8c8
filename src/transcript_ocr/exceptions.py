"""
Custom exceptions for the transcript OCR pipeline.

Provides a hierarchy of exceptions for the errors that can occur while
locating transcript tables, recognizing cells and driving a processing run.
"""

from typing import Any, Dict, Optional


class TranscriptOCRError(Exception):
    """Base exception carrying a message and optional structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = "; ".join(f"{key}: {value}" for key, value in self.details.items())
        return f"{self.message} [{context}]"


class ConfigurationError(TranscriptOCRError):
    """Invalid, unreadable or inconsistent configuration."""


class ValidationError(TranscriptOCRError):
    """A pixel buffer or argument does not have the expected form."""


class ProcessingError(TranscriptOCRError):
    """A processing step failed on an image.

    ``processor`` names the failing component and ``image_path`` the source
    file; any other keyword lands in ``details`` unchanged.
    """

    def __init__(self, message: str, processor: Optional[str] = None,
                 image_path: Optional[str] = None, **context: Any) -> None:
        details = {key: value for key, value in (("processor", processor), ("image_path", image_path)) if value}
        details.update(context)
        super().__init__(message, details)


class ImageLoadError(ProcessingError):
    """Raised when an image cannot be decoded into a pixel buffer."""


class CropError(ProcessingError):
    """Raised when a region cannot be cropped into its own pixel buffer."""


class RecognitionError(ProcessingError):
    """Raised when the text recognition engine fails. Always fatal for a run."""


class InvalidTransitionError(TranscriptOCRError):
    """Raised when the processing state machine is driven out of order."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot transition from {current} to {requested}",
            {"current": current, "requested": requested},
        )


class SessionClosedError(TranscriptOCRError):
    """Raised when a run is requested on a session that is not open."""


class RunCancelled(TranscriptOCRError):
    """Raised at a cancellation checkpoint to unwind the current run."""

    def __init__(self, checkpoint: str) -> None:
        super().__init__("Processing was cancelled", {"checkpoint": checkpoint})
