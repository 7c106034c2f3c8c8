"""
Pydantic models for transcript OCR configuration.

Defines configuration schemas with validation, defaults and documentation for
every pipeline stage. The numeric thresholds are calibration constants tuned
against sample transcripts; they are exposed here so they can be retuned.
"""

import math
import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SortDirection(str, Enum):
    """Sort direction for course records."""
    ASC = "asc"
    DESC = "desc"


class ImageConfig(BaseModel):
    """Configuration for image preparation before detection."""

    max_dimension: int = Field(
        default=2400,
        gt=0,
        description="Images with either side above this are downscaled proportionally"
    )


class DetectionConfig(BaseModel):
    """Configuration for table bounds detection."""

    brightness_threshold: float = Field(
        default=248.0,
        gt=0.0,
        le=256.0,
        description="Pixels with luma below this are treated as content"
    )
    header_marker_ratio: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Marker ratio a scanline must exceed to be taken as the header row"
    )
    marker_span_ratio: float = Field(
        default=0.02,
        ge=0.0,
        le=1.0,
        description="Marker ratio a scanline must exceed to contribute to the horizontal span"
    )
    content_active_ratio: float = Field(
        default=0.02,
        ge=0.0,
        le=1.0,
        description="Active ratio the last content scanline must exceed"
    )
    vertical_padding_ratio: float = Field(
        default=0.02,
        ge=0.0,
        le=1.0,
        description="Padding above the header and below the content, as fraction of height"
    )
    horizontal_padding_ratio: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Padding left and right of the marker span, as fraction of width"
    )


class RowSegmentationConfig(BaseModel):
    """Configuration for the hysteresis row scan."""

    enter_active_ratio: float = Field(
        default=0.015,
        ge=0.0,
        le=1.0,
        description="Active ratio that opens a row band"
    )
    stay_active_ratio: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Active ratio at or below which a scanline counts as quiet"
    )
    quiet_lines: int = Field(
        default=2,
        ge=1,
        description="Consecutive quiet scanlines that close a row band"
    )
    min_row_height: int = Field(
        default=12,
        ge=0,
        description="Bands must be taller than this many pixels"
    )
    min_row_height_ratio: float = Field(
        default=0.015,
        ge=0.0,
        le=1.0,
        description="Bands must be taller than this fraction of the table height"
    )
    header_split_ratio: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Marker ratio above which a scanline belongs to a header; "
                    "a band is split where it drops below this value"
    )

    @model_validator(mode="after")
    def validate_hysteresis(self) -> "RowSegmentationConfig":
        """Entering a row must not be easier than staying in one."""
        if self.enter_active_ratio < self.stay_active_ratio:
            raise ValueError("enter_active_ratio must be greater than or equal to stay_active_ratio")
        return self


class FilterConfig(BaseModel):
    """Configuration for row skipping and record acceptance."""

    header_marker_ratio: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Rows with a marker ratio above this are header rows"
    )
    min_row_height: int = Field(
        default=18,
        ge=0,
        description="Rows shorter than this many pixels are skipped"
    )
    min_row_height_ratio: float = Field(
        default=0.02,
        ge=0.0,
        le=1.0,
        description="Rows shorter than this fraction of the table height are skipped"
    )
    course_number_pattern: str = Field(
        default=r"\d{4,}",
        description="Pattern the course number must contain"
    )
    summary_pattern: str = Field(
        default="學期成績|平均|Credits|總分",
        description="Pattern marking transcript footer lines in course name or remarks"
    )

    @field_validator("course_number_pattern", "summary_pattern")
    @classmethod
    def validate_pattern(cls, v):
        """Ensure the pattern compiles."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {v!r}: {e}")
        return v


class RecognitionConfig(BaseModel):
    """Configuration for the text recognition engine."""

    languages: List[str] = Field(
        default=["eng", "chi_tra"],
        min_length=1,
        description="Tesseract language packs to load"
    )
    page_segmentation_mode: int = Field(
        default=6,
        ge=0,
        le=13,
        description="Tesseract page segmentation mode (6 = single uniform block)"
    )
    preserve_interword_spaces: bool = Field(
        default=True,
        description="Keep the spacing between words"
    )
    char_whitelist: Optional[str] = Field(
        default=None,
        description="Restrict recognition to these characters"
    )
    tesseract_cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary if it is not on PATH"
    )
    timeout: float = Field(
        default=0,
        ge=0,
        description="Per-cell timeout in seconds (0 disables the timeout)"
    )


class GpaRules(BaseModel):
    """Score thresholds for the 4/3/2 grade-point tiers.

    Ordering (grade_a >= grade_b >= grade_c) is expected but not enforced.
    """

    model_config = ConfigDict(validate_assignment=True)

    grade_a: float = Field(default=80, description="Scores at or above this earn 4 points")
    grade_b: float = Field(default=70, description="Scores at or above this earn 3 points")
    grade_c: float = Field(default=60, description="Scores at or above this earn 2 points")

    @field_validator("grade_a", "grade_b", "grade_c")
    @classmethod
    def validate_finite(cls, v):
        """Thresholds must be finite numbers."""
        if not math.isfinite(v):
            raise ValueError("GPA threshold must be a finite number")
        return v

    def set_threshold(self, key: str, raw_value: str) -> bool:
        """Update one threshold from user-entered text.

        Returns False and keeps the previous value when the text is not a number.
        """
        if key not in ("grade_a", "grade_b", "grade_c"):
            raise KeyError(key)
        try:
            value = float(str(raw_value).strip())
        except ValueError:
            return False
        if not math.isfinite(value):
            return False
        setattr(self, key, value)
        return True


class SortConfig(BaseModel):
    """Default ordering of the record table."""

    key: str = Field(default="score", description="Record field to sort by")
    direction: SortDirection = Field(default=SortDirection.DESC, description="Sort direction")

    @field_validator("key")
    @classmethod
    def validate_key(cls, v):
        """Ensure the key names a record field."""
        from ..records import SORTABLE_FIELDS

        if v not in SORTABLE_FIELDS:
            raise ValueError(f"Unknown sort key {v!r}; expected one of {', '.join(SORTABLE_FIELDS)}")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging setup."""

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Base logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path"
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich console output"
    )
    format_style: str = Field(
        default="detailed",
        pattern="^(simple|detailed|minimal)$",
        description="Logging format style"
    )


class Config(BaseModel):
    """Main configuration model for the transcript OCR pipeline."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )

    image: ImageConfig = Field(
        default_factory=ImageConfig,
        description="Image preparation configuration"
    )
    detection: DetectionConfig = Field(
        default_factory=DetectionConfig,
        description="Table bounds detection configuration"
    )
    rows: RowSegmentationConfig = Field(
        default_factory=RowSegmentationConfig,
        description="Row segmentation configuration"
    )
    filters: FilterConfig = Field(
        default_factory=FilterConfig,
        description="Row skipping and record acceptance configuration"
    )
    recognition: RecognitionConfig = Field(
        default_factory=RecognitionConfig,
        description="Text recognition engine configuration"
    )
    gpa: GpaRules = Field(
        default_factory=GpaRules,
        description="GPA tier thresholds"
    )
    sort: SortConfig = Field(
        default_factory=SortConfig,
        description="Default record ordering"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration"
    )

    version: str = Field(
        default="1.0.0",
        description="Configuration version"
    )
    description: Optional[str] = Field(
        default=None,
        description="Configuration description"
    )
