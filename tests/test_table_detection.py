"""Tests for table bounds detection and cropping."""

import numpy as np
import pytest

from transcript_ocr.config import DetectionConfig
from transcript_ocr.exceptions import CropError, ValidationError
from transcript_ocr.processors import (
    Bounds,
    TableBoundsDetector,
    crop_to_bounds,
    detect_table_bounds,
    round_half_up,
)

from conftest import HEADER_GREEN, make_blank_image, make_transcript_image


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(8.0) == 8
    assert round_half_up(5.49) == 5


def test_no_header_returns_full_image(blank_image):
    """Test images without a header marker fall back to the whole image."""
    bounds = detect_table_bounds(blank_image)
    assert bounds == Bounds(0, 0, 600, 400)


def test_text_without_header_returns_full_image():
    image = make_transcript_image(header=None)
    assert detect_table_bounds(image) == Bounds(0, 0, 600, 400)


def test_header_bounds(transcript_image):
    """Test bounds run from above the header to below the last content row."""
    bounds = detect_table_bounds(transcript_image)

    # header at y=40, pad 8; last ink row 183, pad 8; marker span 50..549, pad 6
    assert bounds == Bounds(x=44, y=32, width=512, height=160)
    assert bounds.fits(600, 400)


def test_bounds_are_clamped():
    image = make_transcript_image(header=(2, 12), columns=(0, 600), rows=[(30, 50), (380, 400)])
    bounds = detect_table_bounds(image)

    assert bounds.x == 0 and bounds.y == 0
    assert bounds.right == 600
    assert bounds.bottom == 400


def test_degenerate_marker_span_uses_full_width():
    """Test a single-pixel marker span falls back to the full width."""
    image = make_blank_image(height=20, width=10)
    image[5, 5] = HEADER_GREEN

    bounds = detect_table_bounds(image)

    assert bounds.x == 0
    assert bounds.width == 10


def test_detector_processor(transcript_image):
    detector = TableBoundsDetector(DetectionConfig())
    assert detector.process(transcript_image) == detect_table_bounds(transcript_image)


def test_detector_rejects_rgb_input():
    detector = TableBoundsDetector()
    with pytest.raises(ValidationError):
        detector.process(np.zeros((10, 10, 3), dtype=np.uint8))


def test_crop_to_bounds(transcript_image):
    bounds = Bounds(x=44, y=32, width=512, height=160)
    table = crop_to_bounds(transcript_image, bounds)

    assert table.shape == (160, 512, 4)
    assert np.shares_memory(table, transcript_image) is False
    np.testing.assert_array_equal(table[8, 6], HEADER_GREEN)


def test_crop_outside_image_raises(transcript_image):
    with pytest.raises(CropError):
        crop_to_bounds(transcript_image, Bounds(x=500, y=0, width=200, height=10))


def test_bounds_reject_negative_values():
    with pytest.raises(ValueError):
        Bounds(x=-1, y=0, width=10, height=10)
