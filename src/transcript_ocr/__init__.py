"""Course record extraction from transcript table images."""

__version__ = "1.0.0"

from .pipeline import RunResult, TranscriptImage, TranscriptSession
from .records import CourseRecord, RecordSummary, sort_records, summarize_records
from .state import CancellationToken, ProcessingStage

__all__ = [
    "TranscriptSession",
    "TranscriptImage",
    "RunResult",
    "CourseRecord",
    "RecordSummary",
    "sort_records",
    "summarize_records",
    "CancellationToken",
    "ProcessingStage",
]
