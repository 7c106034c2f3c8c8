"""Per-cell recognition of detected rows and course record assembly."""

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .config.models import FilterConfig
from .exceptions import CropError
from .processors.base import validate_pixel_buffer
from .processors.column_layout import COLUMN_LAYOUT, NUMERIC_FIELDS, ColumnDefinition, column_span
from .processors.row_segmentation import DetectedRow
from .recognition.engine import RecognitionEngine
from .recognition.text import cleanup_text, parse_number
from .records import CourseRecord
from .state import CancellationToken

logger = logging.getLogger(__name__)

RowCallback = Callable[[int, int], None]


class CellRecognitionOrchestrator:
    """Crops every row x column cell and runs it through the engine.

    Cells are recognized strictly one after another; the engine never sees
    overlapping requests. Rows failing the skip heuristics are dropped before
    any recognition and rows failing acceptance after it; neither is an error.
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        config: Optional[FilterConfig] = None,
        columns: Sequence[ColumnDefinition] = COLUMN_LAYOUT,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self.engine = engine
        self.config = config or FilterConfig()
        self.columns = tuple(columns)
        self.cancel_token = cancel_token or CancellationToken()
        self._course_number_re = re.compile(self.config.course_number_pattern)
        self._summary_re = re.compile(self.config.summary_pattern)

    def should_skip_row(self, row: DetectedRow, table_height: int) -> bool:
        """Header rows and rows too thin to hold data are skipped."""
        if row.marker_ratio > self.config.header_marker_ratio:
            return True
        min_height = max(self.config.min_row_height, table_height * self.config.min_row_height_ratio)
        return (row.bottom - row.top) < min_height

    def cell_region(self, table: np.ndarray, row: DetectedRow, column: ColumnDefinition) -> np.ndarray:
        """Copy one cell into its own RGBA buffer.

        The region is at least 1x1. Parts that fall outside the table are
        filled with opaque white.
        """
        validate_pixel_buffer(table)
        height, width = table.shape[:2]
        sx, sw = column_span(width, column)
        sy = max(0, row.top)
        sh = max(1, row.bottom - row.top)

        cell = np.full((sh, sw, 4), 255, dtype=np.uint8)
        src = table[sy:min(height, sy + sh), sx:min(width, sx + sw)]
        if src.size:
            cell[:src.shape[0], :src.shape[1]] = src
        elif height == 0 or width == 0:
            raise CropError(
                "Cannot crop a cell from an empty table",
                processor="orchestrator",
                column=column.key,
            )
        return cell

    def recognize_cell(self, table: np.ndarray, row: DetectedRow, column: ColumnDefinition) -> str:
        """Recognize and clean the text of one cell."""
        region = self.cell_region(table, row, column)
        return cleanup_text(self.engine.recognize(region))

    def build_record(self, record_id: str, term: str, values: Dict[str, str]) -> CourseRecord:
        """Assemble a record from cleaned cell texts, parsing numeric fields."""
        fields: Dict[str, Union[str, Optional[float]]] = {}
        for column in self.columns:
            text = values.get(column.key, "")
            fields[column.key] = parse_number(text) if column.key in NUMERIC_FIELDS else text
        return CourseRecord(id=record_id, term=term, **fields)

    def accept_record(self, record: CourseRecord) -> bool:
        """Keep records with a course number, a score and no footer wording."""
        if not self._course_number_re.search(record.course_number):
            return False
        if record.score is None:
            return False
        if self._summary_re.search(f"{record.course_name} {record.remarks}"):
            return False
        return True

    def recognize_rows(
        self,
        table: np.ndarray,
        rows: Sequence[DetectedRow],
        term: str,
        image_index: int,
        on_row: Optional[RowCallback] = None,
    ) -> List[CourseRecord]:
        """Recognize every usable row of one table image.

        Args:
            table: Cropped table RGBA buffer
            rows: Row bands detected in ``table``
            term: Label of the source image
            image_index: Position of the source image in the batch
            on_row: Called with (rows_done, rows_total) after each row

        Returns:
            Accepted records in row order

        Raises:
            RunCancelled: At a row or cell boundary once cancellation is requested
            RecognitionError: If the engine fails
        """
        table_height = table.shape[0]
        records: List[CourseRecord] = []
        skipped = rejected = 0

        for row_index, row in enumerate(rows):
            self.cancel_token.check(f"{term} row {row_index}")

            if self.should_skip_row(row, table_height):
                skipped += 1
            else:
                values: Dict[str, str] = {}
                for column in self.columns:
                    self.cancel_token.check(f"{term} row {row_index} column {column.key}")
                    values[column.key] = self.recognize_cell(table, row, column)

                record = self.build_record(f"{term}-{image_index}-{row_index}", term, values)
                if self.accept_record(record):
                    records.append(record)
                else:
                    rejected += 1
                    logger.debug(f"Rejected row {row_index} of {term}: {values}")

            if on_row is not None:
                on_row(row_index + 1, len(rows))

        logger.info(
            f"{term}: {len(records)} records accepted, "
            f"{rejected} rejected, {skipped} skipped of {len(rows)} rows"
        )
        return records
