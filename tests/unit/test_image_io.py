"""Unit tests for image decoding and scaling."""

import cv2
import numpy as np
import pytest

from transcript_ocr.exceptions import ImageLoadError
from transcript_ocr.processors import get_image_files, load_image, scale_to_limit, to_rgba


def test_load_png_as_rgba(tmp_path):
    bgr = np.zeros((4, 6, 3), dtype=np.uint8)
    bgr[..., 0] = 200  # blue
    path = tmp_path / "blue.png"
    cv2.imwrite(str(path), bgr)

    image = load_image(path)

    assert image.shape == (4, 6, 4)
    assert image.dtype == np.uint8
    assert tuple(image[0, 0]) == (0, 0, 200, 255)


def test_load_missing_file(tmp_path):
    with pytest.raises(ImageLoadError):
        load_image(tmp_path / "missing.png")


def test_load_corrupt_file(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(ImageLoadError):
        load_image(path)


def test_to_rgba_from_gray():
    gray = np.full((2, 3), 128, dtype=np.uint8)
    image = to_rgba(gray)
    assert image.shape == (2, 3, 4)
    assert tuple(image[0, 0]) == (128, 128, 128, 255)


def test_scale_to_limit_preserves_aspect():
    image = np.zeros((3000, 1500, 4), dtype=np.uint8)
    scaled = scale_to_limit(image, 2400)
    assert scaled.shape == (2400, 1200, 4)


def test_scale_to_limit_keeps_small_images():
    image = np.zeros((100, 50, 4), dtype=np.uint8)
    scaled = scale_to_limit(image, 2400)
    assert scaled.shape == image.shape
    assert scaled is not image


def test_get_image_files(tmp_path):
    for name in ("b.png", "a.JPG", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    assert [p.name for p in get_image_files(tmp_path)] == ["a.JPG", "b.png"]
