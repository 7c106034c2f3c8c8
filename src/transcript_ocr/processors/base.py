"""Base processor class and common utilities for pixel buffer processors."""

from typing import Any, Optional
import numpy as np
from abc import ABC, abstractmethod

from ..exceptions import ValidationError


class BaseProcessor(ABC):
    """Base class for all pixel buffer processors."""

    def __init__(self, config: Optional[Any] = None):
        """Initialize processor with optional configuration section."""
        self.config = config

    @abstractmethod
    def process(self, image: np.ndarray, **kwargs) -> Any:
        """Process a pixel buffer. Must be implemented by subclasses."""
        pass

    def validate_image(self, image: np.ndarray) -> None:
        """Validate that the input is a usable RGBA pixel buffer."""
        validate_pixel_buffer(image)


def validate_pixel_buffer(image: np.ndarray) -> None:
    """Check that ``image`` is a (height, width, 4) uint8 array.

    Zero-sized buffers are allowed; a cropped table can legitimately be empty.
    """
    if image is None:
        raise ValidationError("Image cannot be None")
    if not isinstance(image, np.ndarray):
        raise ValidationError("Image must be a numpy array",
                              {"type": type(image).__name__})
    if image.ndim != 3 or image.shape[2] != 4:
        raise ValidationError("Image must be an RGBA buffer of shape (height, width, 4)",
                              {"shape": image.shape})
    if image.dtype != np.uint8:
        raise ValidationError("Image must have dtype uint8", {"dtype": str(image.dtype)})
