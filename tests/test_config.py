"""Tests for configuration models and loading."""

import json
from pathlib import Path

import pytest

from transcript_ocr.config import (
    Config,
    GpaRules,
    SortDirection,
    get_default_config,
    load_config,
    load_config_from_dict,
    save_config,
    validate_config_file,
)
from transcript_ocr.exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = Path(__file__).resolve().parent.parent / "configs" / "default.yaml"


def test_default_config():
    """Test default configuration creation."""
    config = get_default_config()
    assert isinstance(config, Config)
    assert config.image.max_dimension == 2400
    assert config.detection.brightness_threshold == 248
    assert config.rows.quiet_lines == 2
    assert config.filters.min_row_height == 18
    assert (config.gpa.grade_a, config.gpa.grade_b, config.gpa.grade_c) == (80, 70, 60)
    assert config.sort.key == "score"
    assert config.sort.direction == SortDirection.DESC


def test_bundled_config_matches_defaults():
    config = load_config(DEFAULT_CONFIG_FILE)
    sections = {"image", "detection", "rows", "filters", "recognition", "gpa", "sort", "logging"}
    assert config.model_dump(include=sections) == get_default_config().model_dump(include=sections)
    assert config.recognition.languages == ["eng", "chi_tra"]


def test_load_json_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"gpa": {"grade_a": 85}, "sort": {"key": "credits", "direction": "asc"}}))

    config = load_config(path)

    assert config.gpa.grade_a == 85
    assert config.gpa.grade_b == 70
    assert config.sort.key == "credits"


def test_load_yaml_with_env_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("TRANSCRIPT_OCR_TESSERACT", "/opt/tesseract/bin/tesseract")
    monkeypatch.delenv("LOG_PATH", raising=False)
    monkeypatch.delenv("TRANSCRIPT_OCR_LOG_PATH", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "recognition:\n"
        "  tesseract_cmd: ${TESSERACT}\n"
        "logging:\n"
        "  log_file: ${LOG_PATH:logs/run.log}\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.recognition.tesseract_cmd == "/opt/tesseract/bin/tesseract"
    assert config.logging.log_file == "logs/run.log"


def test_load_toml_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[image]\nmax_dimension = 1600\n", encoding="utf-8")

    assert load_config(path).image.max_dimension == 1600


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "nope.yaml")


def test_unknown_section_rejected():
    with pytest.raises(ConfigurationError, match="unknown_section"):
        load_config_from_dict({"unknown_section": {}})


@pytest.mark.parametrize("data", [
    {"image": {"max_dimension": 0}},
    {"detection": {"header_marker_ratio": 1.5}},
    {"filters": {"course_number_pattern": "(\\d"}},
    {"sort": {"key": "nonexistent"}},
    {"recognition": {"languages": []}},
    {"logging": {"format_style": "fancy"}},
])
def test_invalid_values_rejected(data):
    with pytest.raises(ConfigurationError):
        load_config_from_dict(data)


def test_save_and_reload(tmp_path):
    config = get_default_config()
    config.gpa.grade_a = 85
    path = tmp_path / "saved.yaml"

    save_config(config, path)

    assert validate_config_file(path)
    assert load_config(path).gpa.grade_a == 85


def test_save_unsupported_format(tmp_path):
    with pytest.raises(ConfigurationError):
        save_config(get_default_config(), tmp_path / "config.ini")


def test_gpa_threshold_from_text():
    """Test thresholds entered as text keep the old value when not numeric."""
    rules = GpaRules()

    assert rules.set_threshold("grade_a", " 85.5 ")
    assert rules.grade_a == 85.5

    assert not rules.set_threshold("grade_b", "seventy")
    assert not rules.set_threshold("grade_b", "")
    assert not rules.set_threshold("grade_b", "nan")
    assert rules.grade_b == 70

    with pytest.raises(KeyError):
        rules.set_threshold("grade_d", "50")


def test_environment_overrides(tmp_path):
    """Test section__field variables override file values with typed scalars."""
    path = tmp_path / "config.yaml"
    path.write_text("gpa:\n  grade_a: 85\n", encoding="utf-8")
    environ = {
        "TRANSCRIPT_OCR_GPA__GRADE_A": "90",
        "TRANSCRIPT_OCR_RECOGNITION__LANGUAGES": "[eng]",
        "TRANSCRIPT_OCR_SORT__DIRECTION": "asc",
        "TRANSCRIPT_OCR_HOME": "/ignored",
        "UNRELATED__VALUE": "1",
    }

    config = load_config(path, environ=environ)

    assert config.gpa.grade_a == 90
    assert config.recognition.languages == ["eng"]
    assert config.sort.direction == SortDirection.ASC


def test_override_of_unknown_section(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{}", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(path, environ={"TRANSCRIPT_OCR_OUTPUT__DIR": "x"})


def test_format_detected_without_suffix(tmp_path):
    path = tmp_path / "transcript.conf"
    path.write_text("image:\n  max_dimension: 1200\n", encoding="utf-8")

    assert load_config(path, environ={}).image.max_dimension == 1200
