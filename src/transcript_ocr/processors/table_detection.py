"""Transcript table bounds detection anchored on the green header band."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..config.models import DetectionConfig
from ..exceptions import CropError
from .base import BaseProcessor, validate_pixel_buffer
from .pixel_sampler import RowStatistics, compute_row_statistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bounds:
    """Integer rectangle inside a pixel buffer."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Bounds origin must be non-negative, got ({self.x}, {self.y})")
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Bounds size must be non-negative, got {self.width}x{self.height}")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def fits(self, image_width: int, image_height: int) -> bool:
        """Whether the rectangle lies entirely inside an image of the given size."""
        return self.right <= image_width and self.bottom <= image_height

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


class TableBoundsDetector(BaseProcessor):
    """Processor locating the transcript table inside a full image."""

    def process(self, image: np.ndarray, **kwargs) -> Bounds:
        """Detect the table region.

        Args:
            image: Full-image RGBA buffer
            **kwargs: Precomputed ``stats`` may be passed to skip sampling

        Returns:
            Bounds of the table, or of the whole image when no header is found
        """
        self.validate_image(image)
        config = self.config if isinstance(self.config, DetectionConfig) else DetectionConfig()
        return detect_table_bounds(image, config, stats=kwargs.get("stats"))


def detect_table_bounds(
    image: np.ndarray,
    config: Optional[DetectionConfig] = None,
    stats: Optional[RowStatistics] = None,
) -> Bounds:
    """Find the rectangle holding the transcript table.

    The first scanline whose marker ratio exceeds ``header_marker_ratio`` is
    the header; the table runs from just above it down to the last scanline
    with content. The horizontal extent is the span of marker pixels over all
    scanlines above ``marker_span_ratio``. Every edge is padded and clamped to
    the image.

    Args:
        image: Full-image RGBA buffer
        config: Detection thresholds (defaults when None)
        stats: Row statistics of ``image`` if already computed

    Returns:
        Table bounds. Without any header scanline the whole image is returned.
    """
    config = config or DetectionConfig()
    validate_pixel_buffer(image)
    height, width = image.shape[:2]

    if stats is None:
        stats = compute_row_statistics(image, config.brightness_threshold)

    header_rows = np.flatnonzero(stats.marker_ratio > config.header_marker_ratio)
    if header_rows.size == 0:
        logger.info("No header marker found, using the full image as table region")
        return Bounds(0, 0, width, height)

    pad_y = round_half_up(height * config.vertical_padding_ratio)
    header_y = int(header_rows[0])
    top = max(0, header_y - pad_y)

    content_rows = np.flatnonzero(stats.active_ratio > config.content_active_ratio)
    if content_rows.size:
        bottom = min(height - 1, int(content_rows[-1]) + pad_y)
    else:
        bottom = height - 1

    span_rows = (stats.marker_ratio > config.marker_span_ratio) & (stats.min_marker_x >= 0)
    if span_rows.any():
        left = int(stats.min_marker_x[span_rows].min())
        right = int(stats.max_marker_x[span_rows].max())
    else:
        left, right = width, 0

    if left >= right:
        logger.debug("Marker span unusable, falling back to full image width")
        left, right = 0, width - 1

    pad_x = round_half_up(width * config.horizontal_padding_ratio)
    x = max(0, left - pad_x)
    x_end = min(width, right + 1 + pad_x)
    table_height = max(0, min(height - top, bottom + 1 - top))

    bounds = Bounds(x=x, y=top, width=max(0, x_end - x), height=table_height)
    logger.debug(
        f"Header at y={header_y}; table bounds x={bounds.x} y={bounds.y} "
        f"w={bounds.width} h={bounds.height}"
    )
    return bounds


def crop_to_bounds(image: np.ndarray, bounds: Bounds) -> np.ndarray:
    """Copy the region described by ``bounds`` into its own buffer.

    Raises:
        CropError: If the bounds do not fit inside the image
    """
    validate_pixel_buffer(image)
    height, width = image.shape[:2]
    if not bounds.fits(width, height):
        raise CropError(
            "Crop region exceeds image",
            processor="table_detection",
            bounds=bounds.to_dict(),
            image_size=(width, height),
        )
    return np.ascontiguousarray(image[bounds.y:bounds.bottom, bounds.x:bounds.right]).copy()
