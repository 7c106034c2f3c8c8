"""Transcript processing session and command line interface."""

import argparse
import json
import logging
import signal
import sys
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from .config import Config, SortDirection, get_default_config, load_config
from .exceptions import ConfigurationError, ImageLoadError, RunCancelled, SessionClosedError
from .orchestrator import CellRecognitionOrchestrator
from .processors import (
    IMAGE_EXTENSIONS,
    RowSegmenter,
    TableBoundsDetector,
    compute_row_statistics,
    crop_to_bounds,
    get_image_files,
    load_image,
    scale_to_limit,
    validate_pixel_buffer,
)
from .recognition import RecognitionEngine, TesseractEngine
from .records import SORTABLE_FIELDS, CourseRecord, RecordSummary, sort_records, summarize_records
from .state import (
    CancellationToken,
    ProcessingStage,
    ProcessingStep,
    ProgressObserver,
    ProgressTracker,
    StepStatus,
)
from .utils.console import print_error, print_info, print_records, print_success, print_warning
from .utils.logging_utils import RichProgressObserver, log_processing_stats, setup_logging

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], RecognitionEngine]

SUCCESS_MESSAGE = "Done! Extracted {count} course records."
EMPTY_MESSAGE = (
    "Recognition finished but no valid course records were detected. "
    "Check the images or adjust the settings."
)
FAILURE_MESSAGE = "An error occurred during recognition. Please try again later or use a different image."
CANCELLED_MESSAGE = "Processing was cancelled."

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def derive_term_label(source: Union[str, Path], index: int) -> str:
    """Label of a transcript image: its file name without extension.

    Falls back to ``"Transcript N"`` (1-based) when the stem is blank.
    """
    stem = Path(str(source)).stem.strip()
    return stem or f"Transcript {index + 1}"


@dataclass
class TranscriptImage:
    """One input image, either on disk or already decoded."""

    label: str
    path: Optional[Path] = None
    pixels: Optional[np.ndarray] = None

    @classmethod
    def from_path(cls, path: Union[str, Path], index: int = 0) -> "TranscriptImage":
        path = Path(path)
        return cls(label=derive_term_label(path, index), path=path)

    @classmethod
    def from_array(cls, pixels: np.ndarray, label: str) -> "TranscriptImage":
        return cls(label=label, pixels=pixels)

    def load_pixels(self) -> np.ndarray:
        """Return the RGBA buffer, decoding the file when needed."""
        if self.pixels is not None:
            validate_pixel_buffer(self.pixels)
            return self.pixels
        if self.path is None:
            raise ImageLoadError("Transcript image has neither pixels nor a path", label=self.label)
        return load_image(self.path)


@dataclass
class RunResult:
    """Outcome of one processing run."""

    stage: ProcessingStage
    records: List[CourseRecord] = field(default_factory=list)
    summary: RecordSummary = field(default_factory=RecordSummary)
    steps: List[ProcessingStep] = field(default_factory=list)
    message: str = ""
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == ProcessingStage.DONE

    @property
    def is_empty(self) -> bool:
        """True for a completed run that produced no records."""
        return self.succeeded and not self.records

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "message": self.message,
            "records": [record.to_dict() for record in self.records],
            "summary": self.summary.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
        }


class TranscriptSession:
    """Runs transcript images through detection, recognition and summary.

    A session must be opened before use and is reusable across runs. Every
    run creates its own recognition engine through ``engine_factory`` and
    releases it before returning, whatever the outcome.

    Example:
        >>> with TranscriptSession(config) as session:  # doctest: +SKIP
        ...     result = session.run(["fall-2023.png"])
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        engine_factory: Optional[EngineFactory] = None,
        observers: Optional[Iterable[ProgressObserver]] = None,
    ) -> None:
        self.config = config or get_default_config()
        self.engine_factory = engine_factory or (lambda: TesseractEngine(self.config.recognition))
        self.observers: List[ProgressObserver] = list(observers or [])
        self.table_detector = TableBoundsDetector(self.config.detection)
        self.row_segmenter = RowSegmenter(self.config.rows)
        self._open = False
        self._active_token: Optional[CancellationToken] = None
        self._run_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "TranscriptSession":
        self._open = True
        return self

    def close(self) -> None:
        """Close the session, cancelling a run still in progress."""
        self.cancel()
        self._open = False

    def __enter__(self) -> "TranscriptSession":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def cancel(self) -> None:
        """Request cancellation of the current run, if any."""
        token = self._active_token
        if token is not None:
            logger.info("Cancellation requested")
            token.cancel()

    def run(
        self,
        images: Sequence[Union[TranscriptImage, str, Path]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> RunResult:
        """Process a batch of transcript images.

        A session serves one run at a time; a run started from another thread
        waits until the current one has finished.

        Args:
            images: Images or image paths, processed in order
            cancel_token: Token to cancel the run from another thread

        Returns:
            Result in DONE, FAILED or CANCELLED stage. Failures are reported
            through the result, not raised.

        Raises:
            SessionClosedError: If the session is not open
        """
        if not self._open:
            raise SessionClosedError("Session is not open")

        batch = [
            image if isinstance(image, TranscriptImage) else TranscriptImage.from_path(image, index)
            for index, image in enumerate(images)
        ]
        token = cancel_token or CancellationToken()
        with self._run_lock:
            self._active_token = token
            try:
                return self._run_batch(batch, token)
            finally:
                self._active_token = None

    def _run_batch(self, batch: List[TranscriptImage], token: CancellationToken) -> RunResult:
        tracker = ProgressTracker(self.observers)
        engine: Optional[RecognitionEngine] = None

        try:
            with log_processing_stats(f"transcript run of {len(batch)} images", logger) as stats:
                token.check("start")
                tracker.transition(ProcessingStage.LOADING_ENGINE)
                tracker.update_step("init-engine", detail="Starting OCR engine...")
                engine = self.engine_factory()
                engine.open()
                tracker.update_step("init-engine", StepStatus.DONE, "OCR engine ready")

                tracker.update_step("configure-engine", StepStatus.ACTIVE, "Applying recognition parameters...")
                engine.configure(self.config.recognition)
                tracker.update_step("configure-engine", StepStatus.DONE, "Parameters applied")

                token.check("engine ready")
                tracker.transition(ProcessingStage.LOCATING_TABLES)
                tracker.transition(ProcessingStage.RECOGNIZING)
                tracker.set_progress(0)

                records = self._recognize_batch(batch, engine, tracker, token, stats)

                tracker.transition(ProcessingStage.SUMMARIZING)
                tracker.update_step("summary", detail="Computing credits and averages...")
                summary = summarize_records(records, self.config.gpa)
                ordered = sort_records(records, self.config.sort.key, self.config.sort.direction)

                if ordered:
                    message = SUCCESS_MESSAGE.format(count=len(ordered))
                    tracker.update_step("summary", StepStatus.DONE, message)
                else:
                    message = EMPTY_MESSAGE
                    tracker.update_step("summary", StepStatus.ERROR, "No valid course data detected")
                tracker.transition(ProcessingStage.DONE)

            return RunResult(
                stage=tracker.stage,
                records=ordered,
                summary=summary,
                steps=tracker.snapshot(),
                message=message,
            )

        except RunCancelled as e:
            logger.warning(f"Run cancelled at {e.details.get('checkpoint')}")
            return self._cancelled(tracker, e)

        except Exception as e:
            if token.is_cancelled:
                logger.warning(f"Run interrupted during cancellation: {e}")
                return self._cancelled(tracker, e)
            logger.exception("Transcript run failed")
            if not tracker.stage.is_terminal:
                tracker.fail("Processing failed")
            return RunResult(
                stage=tracker.stage,
                steps=tracker.snapshot(),
                message=FAILURE_MESSAGE,
                error=e,
            )

        finally:
            if engine is not None:
                engine.close()

    def process_image(
        self,
        image: TranscriptImage,
        image_index: int,
        orchestrator: CellRecognitionOrchestrator,
        on_row: Optional[Callable[[int, int], None]] = None,
    ) -> List[CourseRecord]:
        """Locate the table of one image and recognize its rows."""
        pixels = scale_to_limit(image.load_pixels(), self.config.image.max_dimension)
        threshold = self.config.detection.brightness_threshold

        bounds = self.table_detector.process(pixels, stats=compute_row_statistics(pixels, threshold))
        table = crop_to_bounds(pixels, bounds)
        rows = self.row_segmenter.process(table, brightness_threshold=threshold)
        logger.info(f"{image.label}: table {bounds.width}x{bounds.height} at ({bounds.x}, {bounds.y}), {len(rows)} rows")

        return orchestrator.recognize_rows(table, rows, image.label, image_index, on_row=on_row)

    def _recognize_batch(
        self,
        batch: List[TranscriptImage],
        engine: RecognitionEngine,
        tracker: ProgressTracker,
        token: CancellationToken,
        stats: Dict[str, Any],
    ) -> List[CourseRecord]:
        orchestrator = CellRecognitionOrchestrator(engine, self.config.filters, cancel_token=token)
        records: List[CourseRecord] = []
        total = len(batch)

        for index, image in enumerate(batch):
            token.check(f"image {index}")
            tracker.update_step("locate-tables", detail=f"Analyzing {image.label} ({index + 1}/{total})")
            tracker.update_step("recognize", detail=f"Recognizing cells of {image.label}")

            def on_row(done: int, rows: int, index: int = index) -> None:
                tracker.set_progress((index + done / rows) / total * 100)

            records.extend(self.process_image(image, index, orchestrator, on_row=on_row))
            tracker.set_progress((index + 1) / total * 100)
            stats["images_processed"] += 1
            stats["records"] = len(records)

        tracker.update_step("locate-tables", detail=f"Analyzed {total} images")
        tracker.update_step("recognize", detail=f"{len(records)} rows accepted")
        return records

    def _cancelled(self, tracker: ProgressTracker, error: BaseException) -> RunResult:
        if not tracker.stage.is_terminal:
            tracker.cancel("Cancelled")
        return RunResult(
            stage=tracker.stage,
            steps=tracker.snapshot(),
            message=CANCELLED_MESSAGE,
            error=error,
        )


def collect_images(inputs: Iterable[Union[str, Path]]) -> List[Path]:
    """Expand input paths: directories contribute their image files."""
    paths: List[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            paths.extend(get_image_files(path))
        elif path.suffix.lower() in IMAGE_EXTENSIONS or path.exists():
            paths.append(path)
        else:
            logger.warning(f"Skipping unknown input {path}")
    return paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcript-ocr",
        description="Extract course records from transcript table images",
    )
    parser.add_argument("inputs", nargs="+", help="Transcript images or directories of images")
    parser.add_argument("-c", "--config", help="Configuration file (json, yaml or toml)")
    parser.add_argument("--sort-key", choices=SORTABLE_FIELDS, help="Record field to sort by")
    direction = parser.add_mutually_exclusive_group()
    direction.add_argument("--ascending", action="store_true", help="Sort in ascending order")
    direction.add_argument("--descending", action="store_true", help="Sort in descending order")
    parser.add_argument("--grade-a", help="Minimum score for 4 grade points")
    parser.add_argument("--grade-b", help="Minimum score for 3 grade points")
    parser.add_argument("--grade-c", help="Minimum score for 2 grade points")
    parser.add_argument("--tesseract-cmd", help="Path to the tesseract binary")
    parser.add_argument("--json", dest="json_output", help="Write records and summary to this JSON file")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    verbosity.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--log-file", help="Also write a detailed log to this file")
    return parser


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Fold command line options into ``config``.

    Raises:
        ConfigurationError: If a GPA threshold is not a number
    """
    if args.sort_key:
        config.sort.key = args.sort_key
    if args.ascending:
        config.sort.direction = SortDirection.ASC
    elif args.descending:
        config.sort.direction = SortDirection.DESC

    for key in ("grade_a", "grade_b", "grade_c"):
        raw = getattr(args, key)
        if raw is not None and not config.gpa.set_threshold(key, raw):
            raise ConfigurationError(f"Invalid GPA threshold for {key}: {raw!r}")

    if args.tesseract_cmd:
        config.recognition.tesseract_cmd = args.tesseract_cmd
    if args.log_file:
        config.logging.log_file = args.log_file
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config else get_default_config()
        config = apply_cli_overrides(config, args)
    except ConfigurationError as e:
        print_error(str(e))
        return EXIT_USAGE

    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"
    else:
        level = config.logging.level
    setup_logging(
        level=level,
        log_file=config.logging.log_file,
        use_rich=config.logging.use_rich,
        format_style=config.logging.format_style,
    )

    paths = collect_images(args.inputs)
    if not paths:
        print_error("No transcript images found")
        return EXIT_USAGE

    if not args.quiet:
        print_info(f"Processing {len(paths)} transcript images")

    observer = None if args.quiet else RichProgressObserver()
    session = TranscriptSession(config, observers=[observer] if observer is not None else [])

    def handle_interrupt(signum, frame):
        session.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        with session, observer if observer is not None else nullcontext():
            result = session.run(paths)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.records:
        print_records(result.records, result.summary)

    if args.json_output:
        output_path = Path(args.json_output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Wrote results to {output_path}")

    if result.stage == ProcessingStage.DONE:
        if result.is_empty:
            print_warning(result.message)
        else:
            print_success(result.message)
        return EXIT_OK
    if result.stage == ProcessingStage.CANCELLED:
        print_warning(result.message)
        return EXIT_CANCELLED
    print_error(result.message)
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
