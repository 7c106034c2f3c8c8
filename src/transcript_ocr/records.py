"""Course records, sorting and summary statistics."""

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .config.models import GpaRules, SortDirection


@dataclass(frozen=True)
class CourseRecord:
    """One course row extracted from a transcript image.

    ``credits`` and ``score`` are None when the cell held no number; None and
    0 are different values.
    """

    id: str
    term: str
    course_number: str = ""
    requirement: str = ""
    course_name: str = ""
    english_name: str = ""
    course_code: str = ""
    stage: str = ""
    credits: Optional[float] = None
    score: Optional[float] = None
    remarks: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


SORTABLE_FIELDS = tuple(f.name for f in fields(CourseRecord))
NUMERIC_SORT_FIELDS = frozenset({"credits", "score"})


@dataclass(frozen=True)
class RecordSummary:
    """Aggregate statistics over a set of course records."""

    total_credits: float = 0.0
    weighted_score: float = 0.0
    average_score: float = 0.0
    gpa: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _sort_value(record: CourseRecord, key: str):
    value = getattr(record, key)
    if key in NUMERIC_SORT_FIELDS:
        return 0 if value is None else value
    return ("" if value is None else str(value)).lower()


def sort_records(
    records: Iterable[CourseRecord],
    key: str = "score",
    direction: Union[SortDirection, str] = SortDirection.DESC,
) -> List[CourseRecord]:
    """Return the records ordered by one field.

    Numeric fields compare as numbers with None counted as 0; all other
    fields compare case-insensitively as text. The sort is stable in both
    directions, so records with equal keys keep their relative order.
    """
    if key not in SORTABLE_FIELDS:
        raise KeyError(f"Unknown sort key: {key}")
    descending = SortDirection(direction) == SortDirection.DESC
    return sorted(records, key=lambda record: _sort_value(record, key), reverse=descending)


@dataclass
class SortState:
    """Current sort key and direction of a record table."""

    key: str = "score"
    direction: SortDirection = SortDirection.DESC

    def toggle(self, key: str) -> "SortState":
        """Select ``key``: flips the direction for the current key, otherwise
        switches to ``key`` in descending order."""
        if key not in SORTABLE_FIELDS:
            raise KeyError(f"Unknown sort key: {key}")
        if key == self.key:
            self.direction = (
                SortDirection.ASC if SortDirection(self.direction) == SortDirection.DESC
                else SortDirection.DESC
            )
        else:
            self.key = key
            self.direction = SortDirection.DESC
        return self

    def apply(self, records: Iterable[CourseRecord]) -> List[CourseRecord]:
        return sort_records(records, self.key, self.direction)


def calculate_gpa(score: float, credits: float, rules: GpaRules) -> float:
    """Grade points earned by one course: credits times the tier multiplier."""
    if score is None or credits is None:
        return 0.0
    if not math.isfinite(score) or not math.isfinite(credits):
        return 0.0
    if score >= rules.grade_a:
        return 4 * credits
    if score >= rules.grade_b:
        return 3 * credits
    if score >= rules.grade_c:
        return 2 * credits
    return 0.0


def summarize_records(records: Sequence[CourseRecord], rules: Optional[GpaRules] = None) -> RecordSummary:
    """Compute credit totals, averages and GPA.

    Credit-weighted figures use only records where both credits and score are
    present; the arithmetic average uses every record with a score.
    """
    rules = rules or GpaRules()
    total_credits = 0.0
    weighted_sum = 0.0
    gpa_sum = 0.0
    score_sum = 0.0
    scored = 0

    for record in records:
        if record.score is not None:
            score_sum += record.score
            scored += 1
        if record.credits is not None and record.score is not None:
            total_credits += record.credits
            weighted_sum += record.score * record.credits
            gpa_sum += calculate_gpa(record.score, record.credits, rules)

    return RecordSummary(
        total_credits=total_credits,
        weighted_score=weighted_sum / total_credits if total_credits > 0 else 0.0,
        average_score=score_sum / scored if scored else 0.0,
        gpa=gpa_sum / total_credits if total_credits > 0 else 0.0,
    )


def format_number(value: Optional[float], fraction_digits: int = 2) -> str:
    """Format a number for display, ``"-"`` for missing values."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "-"
    return f"{value:,.{fraction_digits}f}"
