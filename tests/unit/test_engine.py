"""Unit tests for the Tesseract engine wrapper (tesseract itself is mocked)."""

import numpy as np
import pytest
import pytesseract

from transcript_ocr.config import RecognitionConfig
from transcript_ocr.exceptions import RecognitionError
from transcript_ocr.recognition import TesseractEngine


@pytest.fixture
def fake_tesseract(monkeypatch):
    calls = {}

    def image_to_string(image, lang=None, config="", timeout=0):
        calls.update(mode=image.mode, size=image.size, lang=lang, config=config, timeout=timeout)
        return "  1001\n"

    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng", "chi_tra", "osd"])
    monkeypatch.setattr(pytesseract, "image_to_string", image_to_string)
    return calls


def test_recognize_with_configured_parameters(fake_tesseract):
    engine = TesseractEngine()
    engine.open()
    engine.configure(RecognitionConfig(page_segmentation_mode=7, char_whitelist="0123456789"))

    text = engine.recognize(np.full((20, 40, 4), 255, dtype=np.uint8))

    assert text == "  1001\n"
    assert fake_tesseract["mode"] == "RGB"
    assert fake_tesseract["size"] == (40, 20)
    assert fake_tesseract["lang"] == "eng+chi_tra"
    assert "--psm 7" in fake_tesseract["config"]
    assert "preserve_interword_spaces=1" in fake_tesseract["config"]
    assert "tessedit_char_whitelist=0123456789" in fake_tesseract["config"]
    engine.close()
    assert not engine.is_open


def test_missing_language_fails_open(fake_tesseract, monkeypatch):
    monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng"])

    engine = TesseractEngine()
    with pytest.raises(RecognitionError, match="language"):
        engine.open()
    assert not engine.is_open


def test_tesseract_not_installed(monkeypatch):
    def missing():
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)

    with pytest.raises(RecognitionError):
        TesseractEngine().open()


def test_recognize_requires_open_engine():
    with pytest.raises(RecognitionError):
        TesseractEngine().recognize(np.zeros((5, 5, 4), dtype=np.uint8))


def test_engine_errors_are_wrapped(fake_tesseract, monkeypatch):
    def crash(*args, **kwargs):
        raise RuntimeError("Tesseract process timeout")

    monkeypatch.setattr(pytesseract, "image_to_string", crash)

    with TesseractEngine() as engine:
        with pytest.raises(RecognitionError):
            engine.recognize(np.zeros((5, 5, 4), dtype=np.uint8))
