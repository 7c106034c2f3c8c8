"""Transcript image processors.

Each processor handles one step of turning a transcript image into row
bands: decoding, pixel sampling, table location, row segmentation and the
fixed column layout.
"""

# Base processor
from .base import BaseProcessor, validate_pixel_buffer

# Image I/O
from .image_io import (
    IMAGE_EXTENSIONS,
    MAX_IMAGE_DIMENSION,
    load_image,
    to_rgba,
    scale_to_limit,
    get_image_files,
)

# Pixel sampling
from .pixel_sampler import (
    RowStat,
    RowStatistics,
    brightness,
    active_mask,
    marker_mask,
    compute_row_statistics,
)

# Table location
from .table_detection import (
    Bounds,
    TableBoundsDetector,
    detect_table_bounds,
    crop_to_bounds,
    round_half_up,
)

# Row segmentation
from .row_segmentation import (
    DetectedRow,
    RowSegmenter,
    segment_rows,
    min_band_height,
)

# Column layout
from .column_layout import (
    COLUMN_LAYOUT,
    NUMERIC_FIELDS,
    ColumnDefinition,
    column_span,
    get_column,
)

__all__ = [
    # Base
    "BaseProcessor",
    "validate_pixel_buffer",
    # Image I/O
    "IMAGE_EXTENSIONS",
    "MAX_IMAGE_DIMENSION",
    "load_image",
    "to_rgba",
    "scale_to_limit",
    "get_image_files",
    # Pixel sampling
    "RowStat",
    "RowStatistics",
    "brightness",
    "active_mask",
    "marker_mask",
    "compute_row_statistics",
    # Table location
    "Bounds",
    "TableBoundsDetector",
    "detect_table_bounds",
    "crop_to_bounds",
    "round_half_up",
    # Row segmentation
    "DetectedRow",
    "RowSegmenter",
    "segment_rows",
    "min_band_height",
    # Column layout
    "COLUMN_LAYOUT",
    "NUMERIC_FIELDS",
    "ColumnDefinition",
    "column_span",
    "get_column",
]
