"""Image I/O utilities for decoding transcripts into RGBA pixel buffers."""

import logging
from pathlib import Path
from typing import List

import cv2
import numpy as np

from ..exceptions import ImageLoadError

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 2400

IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".tiff", ".tif", ".bmp", ".webp"]


def load_image(image_path: Path) -> np.ndarray:
    """Load an image file as an RGBA pixel buffer.

    Args:
        image_path: Path to the image file

    Returns:
        uint8 array of shape (height, width, 4) in RGBA order

    Raises:
        ImageLoadError: If the image cannot be decoded
    """
    path = Path(image_path)
    if not path.is_file():
        raise ImageLoadError("Image file not found", image_path=str(path))

    data = np.fromfile(str(path), dtype=np.uint8)
    image = cv2.imdecode(data, cv2.IMREAD_UNCHANGED) if data.size else None
    if image is None:
        raise ImageLoadError("Could not decode image", image_path=str(image_path))
    return to_rgba(image, color_order="bgr")


def to_rgba(image: np.ndarray, color_order: str = "rgb") -> np.ndarray:
    """Convert a grayscale, 3-channel or 4-channel array into an RGBA buffer.

    Args:
        image: Source array
        color_order: "bgr" for OpenCV-decoded arrays, "rgb" otherwise

    Returns:
        New uint8 array of shape (height, width, 4)
    """
    if image.dtype != np.uint8:
        if image.dtype == np.uint16:
            image = (image // 257).astype(np.uint8)
        else:
            image = np.clip(image, 0, 255).astype(np.uint8)

    bgr = color_order.lower() == "bgr"
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA) if bgr else image.copy()
    raise ImageLoadError("Unsupported channel count", channels=channels)


def scale_to_limit(image: np.ndarray, max_dimension: int = MAX_IMAGE_DIMENSION) -> np.ndarray:
    """Downscale an image so neither side exceeds ``max_dimension``.

    The aspect ratio is preserved; images already within the limit are
    returned as a copy at their original size.
    """
    height, width = image.shape[:2]
    longest = max(width, height)
    if longest == 0:
        return image.copy()
    scale = min(1.0, max_dimension / longest)
    if scale >= 1.0:
        return image.copy()

    new_width = max(1, int(np.floor(width * scale + 0.5)))
    new_height = max(1, int(np.floor(height * scale + 0.5)))
    logger.debug(f"Scaling {width}x{height} image to {new_width}x{new_height}")
    return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)


def get_image_files(directory: Path) -> List[Path]:
    """Get all image files from directory.

    Args:
        directory: Directory to search for images

    Returns:
        List of paths to image files, sorted
    """
    image_files = set()  # Use set to avoid duplicates on case-insensitive filesystems

    for ext in IMAGE_EXTENSIONS:
        image_files.update(directory.glob(f"*{ext}"))
        image_files.update(directory.glob(f"*{ext.upper()}"))

    return sorted(image_files)
