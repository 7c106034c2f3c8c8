"""
Processing state machine, progress reporting and cooperative cancellation.

A run moves through INIT -> LOADING_ENGINE -> LOCATING_TABLES -> RECOGNIZING
-> SUMMARIZING and ends in DONE, FAILED or CANCELLED. Table location and
recognition are interleaved per image, so the locate step stays active while
recognition runs and both complete together when summarizing starts.

The tracker knows nothing about detection or recognition; observers receive
stage, step and progress updates and have no way to push back.
"""

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .exceptions import InvalidTransitionError, RunCancelled

logger = logging.getLogger(__name__)


class ProcessingStage(str, Enum):
    """Stages of one processing run."""
    INIT = "init"
    LOADING_ENGINE = "loading_engine"
    LOCATING_TABLES = "locating_tables"
    RECOGNIZING = "recognizing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset({ProcessingStage.DONE, ProcessingStage.FAILED, ProcessingStage.CANCELLED})

_ABORT = {ProcessingStage.FAILED, ProcessingStage.CANCELLED}

TRANSITIONS: Dict[ProcessingStage, frozenset] = {
    ProcessingStage.INIT: frozenset({ProcessingStage.LOADING_ENGINE} | _ABORT),
    ProcessingStage.LOADING_ENGINE: frozenset({ProcessingStage.LOCATING_TABLES} | _ABORT),
    ProcessingStage.LOCATING_TABLES: frozenset({ProcessingStage.RECOGNIZING} | _ABORT),
    ProcessingStage.RECOGNIZING: frozenset({ProcessingStage.SUMMARIZING} | _ABORT),
    ProcessingStage.SUMMARIZING: frozenset({ProcessingStage.DONE} | _ABORT),
    ProcessingStage.DONE: frozenset(),
    ProcessingStage.FAILED: frozenset(),
    ProcessingStage.CANCELLED: frozenset(),
}

_STAGE_ORDER = [
    ProcessingStage.INIT,
    ProcessingStage.LOADING_ENGINE,
    ProcessingStage.LOCATING_TABLES,
    ProcessingStage.RECOGNIZING,
    ProcessingStage.SUMMARIZING,
]


class StepStatus(str, Enum):
    """Display status of a processing step."""
    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"
    ERROR = "error"


@dataclass
class ProcessingStep:
    """A named, user-visible step of a run."""

    id: str
    label: str
    stage: ProcessingStage
    status: StepStatus = StepStatus.PENDING
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "status": self.status.value,
            "detail": self.detail,
        }


DEFAULT_STEPS = (
    ("init-engine", "Initialize OCR engine", ProcessingStage.LOADING_ENGINE),
    ("configure-engine", "Apply recognition parameters", ProcessingStage.LOADING_ENGINE),
    ("locate-tables", "Locate transcript tables", ProcessingStage.LOCATING_TABLES),
    ("recognize", "Segment cells and recognize text", ProcessingStage.RECOGNIZING),
    ("summary", "Summarize results", ProcessingStage.SUMMARIZING),
)


class ProgressObserver:
    """Receives progress notifications. Override the methods you need."""

    def stage_changed(self, stage: ProcessingStage) -> None:
        pass

    def step_changed(self, step: ProcessingStep) -> None:
        pass

    def progress_changed(self, percent: int) -> None:
        pass


class CancellationToken:
    """Thread-safe cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, checkpoint: str) -> None:
        """Raise :class:`RunCancelled` if cancellation was requested."""
        if self._event.is_set():
            raise RunCancelled(checkpoint)


class ProgressTracker:
    """Explicit transition function over :class:`ProcessingStage`.

    Steps are mutated in place and every change is forwarded to observers.
    """

    def __init__(self, observers: Optional[Iterable[ProgressObserver]] = None) -> None:
        self.stage = ProcessingStage.INIT
        self.percent = 0
        self.observers: List[ProgressObserver] = list(observers or [])
        self.steps: List[ProcessingStep] = [
            ProcessingStep(id=step_id, label=label, stage=stage)
            for step_id, label, stage in DEFAULT_STEPS
        ]

    def get_step(self, step_id: str) -> ProcessingStep:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    def snapshot(self) -> List[ProcessingStep]:
        """Copies of the current steps."""
        return [replace(step) for step in self.steps]

    def update_step(self, step_id: str, status: Optional[StepStatus] = None,
                    detail: Optional[str] = None) -> ProcessingStep:
        """Patch one step's status and/or detail."""
        step = self.get_step(step_id)
        if status is not None:
            step.status = StepStatus(status)
        if detail is not None:
            step.detail = detail
        self._notify_step(step)
        return step

    def transition(self, target: ProcessingStage, detail: Optional[str] = None) -> None:
        """Move to ``target``, validating the edge and updating steps.

        ``detail`` is attached to the affected steps on FAILED and CANCELLED.
        """
        target = ProcessingStage(target)
        if target not in TRANSITIONS[self.stage]:
            raise InvalidTransitionError(self.stage.value, target.value)

        logger.debug(f"Stage {self.stage.value} -> {target.value}")
        self.stage = target

        if target == ProcessingStage.DONE:
            self._complete_open_steps()
        elif target == ProcessingStage.FAILED:
            self._mark_failed(detail or "An error occurred during processing")
        elif target == ProcessingStage.CANCELLED:
            self._mark_cancelled(detail or "Cancelled")
        else:
            self._enter(target)

        for observer in self.observers:
            observer.stage_changed(target)

    def set_progress(self, percent: float) -> int:
        """Report recognition progress as a 0-100 percentage."""
        if self.stage != ProcessingStage.RECOGNIZING:
            raise InvalidTransitionError(self.stage.value, "progress")
        value = int(round(min(100.0, max(0.0, percent))))
        if value != self.percent:
            self.percent = value
            for observer in self.observers:
                observer.progress_changed(value)
        return value

    def fail(self, detail: str) -> None:
        """Transition to FAILED, attaching ``detail`` to the failing step."""
        self.transition(ProcessingStage.FAILED, detail)

    def cancel(self, detail: str = "Cancelled") -> None:
        """Transition to CANCELLED."""
        self.transition(ProcessingStage.CANCELLED, detail)

    def _enter(self, target: ProcessingStage) -> None:
        target_index = _STAGE_ORDER.index(target)
        for step in self.steps:
            if step.status not in (StepStatus.PENDING, StepStatus.ACTIVE):
                continue
            step_index = _STAGE_ORDER.index(step.stage)
            interleaved = (target == ProcessingStage.RECOGNIZING
                           and step.stage == ProcessingStage.LOCATING_TABLES)
            if step_index < target_index and not interleaved:
                step.status = StepStatus.DONE
                self._notify_step(step)

        first = next((s for s in self.steps if s.stage == target), None)
        if first is not None and first.status == StepStatus.PENDING:
            first.status = StepStatus.ACTIVE
            self._notify_step(first)

    def _complete_open_steps(self) -> None:
        for step in self.steps:
            if step.status in (StepStatus.PENDING, StepStatus.ACTIVE):
                step.status = StepStatus.DONE
                self._notify_step(step)

    def _mark_failed(self, detail: str) -> None:
        active = [step for step in self.steps if step.status == StepStatus.ACTIVE]
        target = active[-1] if active else self.steps[-1]
        target.status = StepStatus.ERROR
        target.detail = detail
        self._notify_step(target)

    def _mark_cancelled(self, detail: str) -> None:
        for step in self.steps:
            if step.status == StepStatus.ACTIVE:
                step.status = StepStatus.ERROR
                step.detail = detail
                self._notify_step(step)

    def _notify_step(self, step: ProcessingStep) -> None:
        for observer in self.observers:
            observer.step_changed(step)
