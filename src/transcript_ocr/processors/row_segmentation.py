"""Row band segmentation of a cropped transcript table."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..config.models import RowSegmentationConfig
from .base import BaseProcessor, validate_pixel_buffer
from .pixel_sampler import BRIGHTNESS_THRESHOLD, RowStatistics, compute_row_statistics

logger = logging.getLogger(__name__)

# Stats reported for a band still open when the scan reaches the last scanline.
TRAILING_ROW_ACTIVE_RATIO = 0.02
TRAILING_ROW_MARKER_RATIO = 0.0


@dataclass(frozen=True)
class DetectedRow:
    """A vertical band of the table believed to hold one row.

    ``active_ratio`` and ``marker_ratio`` are the peak values over the band's
    scanlines.
    """

    top: int
    bottom: int
    height: int
    active_ratio: float
    marker_ratio: float


class RowSegmenter(BaseProcessor):
    """Processor splitting a table buffer into row bands."""

    def process(self, image: np.ndarray, **kwargs) -> List[DetectedRow]:
        """Segment the table into rows.

        Args:
            image: Cropped table RGBA buffer
            **kwargs: ``brightness_threshold`` and precomputed ``stats``

        Returns:
            Row bands in top-to-bottom order
        """
        self.validate_image(image)
        config = self.config if isinstance(self.config, RowSegmentationConfig) else RowSegmentationConfig()
        return segment_rows(
            image,
            config,
            brightness_threshold=kwargs.get("brightness_threshold", BRIGHTNESS_THRESHOLD),
            stats=kwargs.get("stats"),
        )


def min_band_height(table_height: int, config: RowSegmentationConfig) -> float:
    """Height a band must exceed to be kept."""
    return max(config.min_row_height, table_height * config.min_row_height_ratio)


def segment_rows(
    image: np.ndarray,
    config: Optional[RowSegmentationConfig] = None,
    brightness_threshold: float = BRIGHTNESS_THRESHOLD,
    stats: Optional[RowStatistics] = None,
) -> List[DetectedRow]:
    """Partition a table buffer into row bands with a hysteresis scan.

    A band opens on the first scanline whose active ratio exceeds
    ``enter_active_ratio`` (starting one line above it) and closes once
    ``quiet_lines`` consecutive scanlines are at or below
    ``stay_active_ratio``. A band is also cut where the marker ratio falls
    from above ``header_split_ratio`` to at or below it, so a data row
    touching the header band becomes its own band. Bands not taller than
    :func:`min_band_height` are dropped. The scan is deterministic: the same
    buffer always yields the same rows.
    """
    config = config or RowSegmentationConfig()
    validate_pixel_buffer(image)
    height = image.shape[0]

    if stats is None:
        stats = compute_row_statistics(image, brightness_threshold)

    threshold = min_band_height(height, config)
    rows: List[DetectedRow] = []

    def close_band(top: int, bottom: int) -> None:
        band_height = bottom - top
        if band_height <= threshold:
            logger.debug(f"Dropping {band_height}px band at y={top}")
            return
        rows.append(DetectedRow(
            top=top,
            bottom=bottom,
            height=band_height,
            active_ratio=float(stats.active_ratio[top:bottom + 1].max()),
            marker_ratio=float(stats.marker_ratio[top:bottom + 1].max()),
        ))

    inside = False
    start = 0
    quiet = 0

    for y in range(height):
        active_ratio = stats.active_ratio[y]

        if not inside:
            if active_ratio > config.enter_active_ratio:
                inside = True
                start = max(0, y - 1)
                quiet = 0
        elif active_ratio <= config.stay_active_ratio:
            quiet += 1
            if quiet >= config.quiet_lines:
                close_band(start, y)
                inside = False
                quiet = 0
        else:
            quiet = 0
            if (stats.marker_ratio[y - 1] > config.header_split_ratio
                    and stats.marker_ratio[y] <= config.header_split_ratio):
                close_band(start, y)
                start = y

    if inside:
        bottom = height - 1
        band_height = bottom - start
        if band_height > threshold:
            rows.append(DetectedRow(
                top=start,
                bottom=bottom,
                height=band_height,
                active_ratio=TRAILING_ROW_ACTIVE_RATIO,
                marker_ratio=TRAILING_ROW_MARKER_RATIO,
            ))

    logger.debug(f"Detected {len(rows)} row bands in {height}px table")
    return rows
