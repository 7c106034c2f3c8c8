"""Per-scanline pixel statistics shared by the table and row detectors.

A pixel is *active* when its luma is below the near-white threshold and a
*marker* when it belongs to the saturated green header band printed on the
transcript template. Both classifications ignore alpha.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from .base import validate_pixel_buffer

BRIGHTNESS_THRESHOLD = 248.0

# Green-dominance predicate for header marker pixels. Not configurable.
MARKER_MIN_GREEN = 120
MARKER_GREEN_OVER_RED = 25
MARKER_GREEN_OVER_BLUE = 10

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class RowStat(NamedTuple):
    """Statistics for one scanline."""
    active_ratio: float
    marker_ratio: float
    min_marker_x: Optional[int]
    max_marker_x: Optional[int]


@dataclass(frozen=True)
class RowStatistics:
    """Column-oriented row statistics for a whole buffer.

    ``min_marker_x`` and ``max_marker_x`` hold -1 for scanlines without marker
    pixels.
    """

    width: int
    height: int
    active_ratio: np.ndarray
    marker_ratio: np.ndarray
    min_marker_x: np.ndarray
    max_marker_x: np.ndarray

    def __len__(self) -> int:
        return self.height

    def row(self, y: int) -> RowStat:
        has_marker = self.min_marker_x[y] >= 0
        return RowStat(
            active_ratio=float(self.active_ratio[y]),
            marker_ratio=float(self.marker_ratio[y]),
            min_marker_x=int(self.min_marker_x[y]) if has_marker else None,
            max_marker_x=int(self.max_marker_x[y]) if has_marker else None,
        )


def brightness(image: np.ndarray) -> np.ndarray:
    """Perceptual luma of every pixel as a float array of shape (height, width)."""
    rgb = image[..., :3].astype(np.float64)
    r_w, g_w, b_w = LUMA_WEIGHTS
    return r_w * rgb[..., 0] + g_w * rgb[..., 1] + b_w * rgb[..., 2]


def active_mask(image: np.ndarray, brightness_threshold: float = BRIGHTNESS_THRESHOLD) -> np.ndarray:
    """Boolean mask of non-background pixels."""
    return brightness(image) < brightness_threshold


def marker_mask(image: np.ndarray) -> np.ndarray:
    """Boolean mask of green header marker pixels."""
    rgb = image[..., :3].astype(np.int16)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    return (
        (g > MARKER_MIN_GREEN)
        & (g > r + MARKER_GREEN_OVER_RED)
        & (g > b + MARKER_GREEN_OVER_BLUE)
    )


def compute_row_statistics(
    image: np.ndarray,
    brightness_threshold: float = BRIGHTNESS_THRESHOLD,
) -> RowStatistics:
    """Compute one :class:`RowStat` per scanline in a single pass.

    Args:
        image: RGBA pixel buffer; it is not modified
        brightness_threshold: Luma below which a pixel counts as active

    Returns:
        RowStatistics with per-row active ratio, marker ratio and marker span
    """
    validate_pixel_buffer(image)
    height, width = image.shape[:2]

    if width == 0 or height == 0:
        empty = np.zeros(height, dtype=np.float64)
        none = np.full(height, -1, dtype=np.int64)
        return RowStatistics(width, height, empty, empty.copy(), none, none.copy())

    active = active_mask(image, brightness_threshold)
    marker = marker_mask(image)

    active_ratio = active.sum(axis=1) / width
    marker_ratio = marker.sum(axis=1) / width

    has_marker = marker.any(axis=1)
    min_x = np.where(has_marker, marker.argmax(axis=1), -1)
    max_x = np.where(has_marker, width - 1 - marker[:, ::-1].argmax(axis=1), -1)

    return RowStatistics(
        width=width,
        height=height,
        active_ratio=active_ratio,
        marker_ratio=marker_ratio,
        min_marker_x=min_x.astype(np.int64),
        max_marker_x=max_x.astype(np.int64),
    )
