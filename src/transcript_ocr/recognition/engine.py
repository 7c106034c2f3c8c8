"""Text recognition engines used for per-cell OCR.

An engine is a stateful resource: it is opened once, configured once before
the first cell, asked to recognize cells one at a time, and closed once.
Engines never serve overlapping requests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import pytesseract
from PIL import Image

from ..config.models import RecognitionConfig
from ..exceptions import RecognitionError

logger = logging.getLogger(__name__)


class RecognitionEngine(ABC):
    """Interface for text recognition engines."""

    def __init__(self) -> None:
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Acquire the engine resource."""
        self._open = True

    def configure(self, config: RecognitionConfig) -> None:
        """Apply engine-level parameters before any cell is recognized."""

    @abstractmethod
    def recognize(self, region: np.ndarray) -> str:
        """Return the raw text found in an RGBA cell buffer."""
        raise NotImplementedError

    def close(self) -> None:
        """Release the engine resource."""
        self._open = False

    def __enter__(self) -> "RecognitionEngine":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class TesseractEngine(RecognitionEngine):
    """Tesseract OCR through pytesseract."""

    def __init__(self, config: Optional[RecognitionConfig] = None) -> None:
        super().__init__()
        self.config = config or RecognitionConfig()
        self._lang = "+".join(self.config.languages)
        self._tesseract_args = ""
        self._timeout = self.config.timeout

    def open(self) -> None:
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
            available = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            raise RecognitionError("Tesseract is not available", processor="tesseract") from e

        missing = [lang for lang in self.config.languages if lang not in available]
        if missing:
            raise RecognitionError(
                "Tesseract language data missing",
                processor="tesseract",
                missing=",".join(missing),
            )

        logger.info(f"Tesseract {version} ready with languages {self._lang}")
        super().open()

    def configure(self, config: RecognitionConfig) -> None:
        self.config = config
        self._lang = "+".join(config.languages)
        self._timeout = config.timeout

        args = [f"--psm {config.page_segmentation_mode}"]
        if config.preserve_interword_spaces:
            args.append("-c preserve_interword_spaces=1")
        if config.char_whitelist:
            args.append(f"-c tessedit_char_whitelist={config.char_whitelist}")
        self._tesseract_args = " ".join(args)
        logger.debug(f"Tesseract parameters: lang={self._lang} {self._tesseract_args}")

    def recognize(self, region: np.ndarray) -> str:
        if not self.is_open:
            raise RecognitionError("Engine is not open", processor="tesseract")

        image = Image.fromarray(region).convert("RGB")
        try:
            return pytesseract.image_to_string(
                image,
                lang=self._lang,
                config=self._tesseract_args,
                timeout=self._timeout,
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            raise RecognitionError(
                "Tesseract failed to recognize cell",
                processor="tesseract",
                region_size=f"{region.shape[1]}x{region.shape[0]}",
            ) from e

    def close(self) -> None:
        if self.is_open:
            logger.debug("Tesseract engine released")
        super().close()
