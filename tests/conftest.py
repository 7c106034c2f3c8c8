"""
Pytest configuration and shared fixtures for transcript OCR tests.

Provides synthetic transcript images, a scripted recognition engine and
test configuration for all test modules.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytest

from transcript_ocr.config import Config, get_default_config
from transcript_ocr.processors import COLUMN_LAYOUT
from transcript_ocr.recognition import RecognitionEngine
from transcript_ocr.state import CancellationToken
from transcript_ocr.utils.logging_utils import setup_logging

WHITE = (255, 255, 255, 255)
HEADER_GREEN = (40, 160, 60, 255)
INK = (30, 30, 30, 255)

# Layout of the standard synthetic transcript (400x600)
HEADER_ROWS = (40, 60)
TABLE_COLUMNS = (50, 550)
DATA_ROWS = [(80, 104), (120, 144), (160, 184)]


def make_blank_image(height: int = 400, width: int = 600) -> np.ndarray:
    """Opaque white RGBA buffer."""
    return np.full((height, width, 4), WHITE, dtype=np.uint8)


def make_transcript_image(
    height: int = 400,
    width: int = 600,
    header: Optional[Tuple[int, int]] = HEADER_ROWS,
    columns: Tuple[int, int] = TABLE_COLUMNS,
    rows: Sequence[Tuple[int, int]] = tuple(DATA_ROWS),
) -> np.ndarray:
    """Draw a transcript-like table: a green header band and dark text bars.

    ``header`` and every entry of ``rows`` are half-open [top, bottom) ranges.
    """
    image = make_blank_image(height, width)
    left, right = columns
    if header is not None:
        image[header[0]:header[1], left:right] = HEADER_GREEN
    for top, bottom in rows:
        image[top:bottom, left + 10:right - 10] = INK
    return image


def write_rgba_png(image: np.ndarray, path: Path) -> Path:
    """Save an RGBA buffer so that load_image returns the same pixels."""
    cv2.imwrite(str(path), cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA))
    return path


def script_rows(*rows: Dict[str, str]) -> List[str]:
    """Flatten per-row cell texts into the order cells are recognized."""
    return [row.get(column.key, "") for row in rows for column in COLUMN_LAYOUT]


class FakeEngine(RecognitionEngine):
    """Recognition engine returning scripted texts in call order."""

    def __init__(
        self,
        responses: Sequence[str] = (),
        fail_on_open: bool = False,
        fail_on_call: Optional[int] = None,
        cancel_on_call: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        super().__init__()
        self.responses = list(responses)
        self.fail_on_open = fail_on_open
        self.fail_on_call = fail_on_call
        self.cancel_on_call = cancel_on_call
        self.cancel_token = cancel_token
        self.open_calls = 0
        self.close_calls = 0
        self.configured_with = None
        self.regions: List[Tuple[int, int]] = []

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_on_open:
            raise RuntimeError("engine failed to start")
        super().open()

    def configure(self, config) -> None:
        self.configured_with = config

    def recognize(self, region: np.ndarray) -> str:
        assert self.is_open, "recognize called on a closed engine"
        call = len(self.regions)
        self.regions.append(region.shape[:2])
        if self.fail_on_call is not None and call == self.fail_on_call:
            raise RuntimeError("recognition crashed")
        if self.cancel_on_call is not None and call == self.cancel_on_call:
            self.cancel_token.cancel()
        return self.responses[call] if call < len(self.responses) else ""

    def close(self) -> None:
        self.close_calls += 1
        super().close()


@pytest.fixture
def transcript_image() -> np.ndarray:
    """Synthetic transcript with a header and three data rows."""
    return make_transcript_image()


@pytest.fixture
def blank_image() -> np.ndarray:
    return make_blank_image()


@pytest.fixture
def course_rows() -> List[Dict[str, str]]:
    """Cell texts for the three data rows of ``transcript_image``."""
    return [
        {"course_number": "1001", "course_name": "Calculus", "credits": "3", "score": "87.5 分"},
        {"course_number": "1002", "course_name": "Physics", "credits": "2", "score": "92"},
        {"course_number": "2001", "course_name": "學期成績平均", "credits": "5", "score": "89"},
    ]


@pytest.fixture
def engine_factory() -> Callable[..., FakeEngine]:
    """Build FakeEngines; every engine built is kept in ``factory.created``."""
    created: List[FakeEngine] = []

    def factory(*args, **kwargs) -> FakeEngine:
        engine = FakeEngine(*args, **kwargs)
        created.append(engine)
        return engine

    factory.created = created
    return factory


@pytest.fixture
def sample_config() -> Config:
    """Create a sample configuration for testing."""
    config = get_default_config()
    config.logging.level = "DEBUG"
    config.logging.use_rich = False  # Disable rich for cleaner test output
    return config


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Setup logging for tests."""
    setup_logging(level="WARNING", use_rich=False, format_style="minimal")
