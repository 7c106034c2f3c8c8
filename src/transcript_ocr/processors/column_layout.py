"""Fixed proportional column layout of the transcript template.

Column edges are fractions of the row width, not derived from content.
Transcripts whose columns deviate from these fractions will misalign.
"""

import math
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ColumnDefinition:
    """One column as a fractional [start, end) span of the row width."""

    key: str
    label: str
    start: float
    end: float

    def __post_init__(self):
        if not (0.0 <= self.start < self.end <= 1.0):
            raise ValueError(
                f"Column {self.key!r} needs 0 <= start < end <= 1, got {self.start}..{self.end}"
            )


COLUMN_LAYOUT: Tuple[ColumnDefinition, ...] = (
    ColumnDefinition("course_number", "Course No.", 0.0, 0.1),
    ColumnDefinition("requirement", "Required/Elective", 0.1, 0.18),
    ColumnDefinition("course_name", "Course Name", 0.18, 0.32),
    ColumnDefinition("english_name", "English Course", 0.32, 0.56),
    ColumnDefinition("course_code", "Course Code", 0.56, 0.66),
    ColumnDefinition("stage", "Stage", 0.66, 0.72),
    ColumnDefinition("credits", "Credits", 0.72, 0.78),
    ColumnDefinition("score", "Score", 0.78, 0.86),
    ColumnDefinition("remarks", "Remarks", 0.86, 1.0),
)

NUMERIC_FIELDS = frozenset({"credits", "score"})


def column_span(width: int, column: ColumnDefinition) -> Tuple[int, int]:
    """Pixel start and width of ``column`` in a row ``width`` pixels wide.

    The width is at least one pixel even when the span collapses.
    """
    sx = min(width, max(0, math.floor(width * column.start)))
    ex = min(width, max(0, math.ceil(width * column.end)))
    return sx, max(1, ex - sx)


def get_column(key: str) -> ColumnDefinition:
    """Look up a column definition by field key."""
    for column in COLUMN_LAYOUT:
        if column.key == key:
            return column
    raise KeyError(key)
