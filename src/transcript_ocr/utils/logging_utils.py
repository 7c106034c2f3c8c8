"""
Logging utilities with rich console output and run statistics.

Provides logging setup for the transcript OCR pipeline plus a rich progress
observer that renders processing steps and recognition progress.
"""

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TaskProgressColumn, TextColumn

from ..state import ProcessingStage, ProcessingStep, ProgressObserver, StepStatus

console = Console()

STEP_SYMBOLS = {
    StepStatus.PENDING: "[dim]·[/dim]",
    StepStatus.ACTIVE: "[cyan]>[/cyan]",
    StepStatus.DONE: "[green]✓[/green]",
    StepStatus.ERROR: "[red]✗[/red]",
}

# Fields shown per format style, between the timestamp and the message
FORMAT_FIELDS = {
    "minimal": ("%(levelname)s",),
    "simple": ("%(name)s", "%(levelname)s"),
    "detailed": ("%(name)s", "%(levelname)s", "%(funcName)s"),
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty below WARNING
NOISY_LOGGERS = ("PIL", "pytesseract")


class TranscriptFormatter(logging.Formatter):
    """Plain-text formatter for the ``minimal``, ``simple`` and ``detailed`` styles."""

    def __init__(self, style: str = "detailed"):
        if style not in FORMAT_FIELDS:
            raise ValueError(f"Unknown log format style: {style}")
        fmt = " - ".join(("%(asctime)s",) + FORMAT_FIELDS[style] + ("%(message)s",))
        super().__init__(fmt, datefmt=DATE_FORMAT)
        self.style_name = style


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    use_rich: bool = True,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    Configure the root logger for a transcript run.

    Args:
        level: Console logging level
        log_file: Optional file receiving everything from DEBUG up
        use_rich: Log through rich instead of a plain stderr stream
        format_style: 'minimal', 'simple' or 'detailed'

    Returns:
        The configured root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = _console_handler(use_rich, format_style)
    handler.setLevel(level)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if log_file:
        root_logger.addHandler(_file_handler(Path(log_file)))
        root_logger.setLevel(logging.DEBUG)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def _console_handler(use_rich: bool, format_style: str) -> logging.Handler:
    if not use_rich:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(TranscriptFormatter(format_style))
        return handler

    # Cell texts end up in log messages, so rich markup stays off
    handler = RichHandler(
        console=console,
        show_time=format_style != "minimal",
        show_path=format_style == "detailed",
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(TranscriptFormatter("detailed"))
    handler.setLevel(logging.DEBUG)
    return handler


@contextmanager
def log_processing_stats(
    operation: str,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO
) -> Iterator[Dict[str, Any]]:
    """
    Log the start, outcome and duration of a run.

    The yielded dictionary is filled in by the caller; ``images_processed``
    and ``records`` are reported on completion.
    """
    logger = logger or logging.getLogger()
    stats: Dict[str, Any] = {"operation": operation, "images_processed": 0, "records": 0}
    started = time.perf_counter()
    logger.log(level, f"Starting {operation}")

    try:
        yield stats
    except Exception as e:
        logger.log(level, f"Stopped {operation} after {time.perf_counter() - started:.2f}s: {e}")
        raise

    stats["duration"] = time.perf_counter() - started
    logger.log(
        level,
        f"Completed {operation}: {stats['images_processed']} images, "
        f"{stats['records']} records in {stats['duration']:.2f}s"
    )


class RichProgressObserver(ProgressObserver):
    """Renders processing steps and recognition progress on the console."""

    def __init__(self, description: str = "Recognizing cells", out: Optional[Console] = None):
        self.description = description
        self.console = out or console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=True,
        )
        self.task_id: Optional[TaskID] = None

    def __enter__(self) -> 'RichProgressObserver':
        self.progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.__exit__(exc_type, exc_val, exc_tb)

    def stage_changed(self, stage: ProcessingStage) -> None:
        if stage == ProcessingStage.RECOGNIZING and self.task_id is None:
            self.task_id = self.progress.add_task(self.description, total=100)
        elif stage.is_terminal and self.task_id is not None:
            self.progress.remove_task(self.task_id)
            self.task_id = None

    def step_changed(self, step: ProcessingStep) -> None:
        if step.status == StepStatus.PENDING:
            return
        symbol = STEP_SYMBOLS[step.status]
        detail = f" [dim]{escape(step.detail)}[/dim]" if step.detail else ""
        self.console.print(f"{symbol} {escape(step.label)}{detail}", highlight=False)

    def progress_changed(self, percent: int) -> None:
        if self.task_id is not None:
            self.progress.update(self.task_id, completed=percent)
