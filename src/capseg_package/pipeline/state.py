"""
state.py

Plain data for one processing attempt and its output.

    PipelineRun       -> live progress/label of ONE run (mutated only by the pipeline)
    ProcessingResult  -> immutable output of a successful run
    RunOutcome        -> result-or-error returned by ProcessingPipeline.run()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from capseg_package.intake import SourceImage
from capseg_package.utils.exceptions import CaptionError, PipelineError

# Checkpoints, in order
PROGRESS_START = 0
PROGRESS_DECODED = 20
PROGRESS_CAPTIONED = 50
PROGRESS_DONE = 100

LABEL_LOADING = "Loading image..."
LABEL_CAPTIONING = "Generating caption..."
LABEL_SEGMENTING = "Segmenting image..."
LABEL_COMPLETE = "Complete!"


class CaptionStatus(str, Enum):
    GENERATED = "generated"  # model produced text
    EMPTY = "empty"          # model ran but produced no text
    FALLBACK = "fallback"    # model failed; fallback text substituted


@dataclass(frozen=True)
class ProcessingResult:
    original: SourceImage
    segmented: bytes = field(repr=False)
    caption: str
    caption_status: CaptionStatus = CaptionStatus.GENERATED
    # set when caption_status is FALLBACK
    caption_error: Optional[CaptionError] = None
    segmented_media_type: str = "image/png"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class RunOutcome:
    result: Optional[ProcessingResult] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


ProgressListener = Callable[["PipelineRun"], None]


class PipelineRun:
    """
    Progress of one processing attempt.

    Progress only ever moves forward while the run is active. A failed run
    is reset to idle (progress 0, empty label); a successful one stays at 100.
    """

    def __init__(self):
        self.progress = PROGRESS_START
        self.label = ""
        self.in_progress = False
        self.outcome: Optional[RunOutcome] = None
        self.checkpoints: List[int] = []
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def start(self) -> None:
        if self.in_progress:
            raise RuntimeError("PipelineRun already started")
        self.in_progress = True
        self.outcome = None
        self.checkpoints = []
        self.update(PROGRESS_START, LABEL_LOADING)

    def update(self, progress: Optional[int] = None, label: Optional[str] = None) -> None:
        if progress is not None:
            if not PROGRESS_START <= progress <= PROGRESS_DONE:
                raise ValueError(f"progress out of range: {progress}")
            if progress < self.progress:
                raise ValueError(f"progress cannot go backwards ({self.progress} -> {progress})")
            self.progress = progress
            if not self.checkpoints or self.checkpoints[-1] != progress:
                self.checkpoints.append(progress)
        if label is not None:
            self.label = label
        self._notify()

    def succeed(self, result: ProcessingResult) -> RunOutcome:
        self.update(PROGRESS_DONE, LABEL_COMPLETE)
        self.in_progress = False
        self.outcome = RunOutcome(result=result)
        self._notify()
        return self.outcome

    def fail(self, error: PipelineError) -> RunOutcome:
        self.outcome = RunOutcome(error=error)
        self.reset()
        return self.outcome

    def reset(self) -> None:
        """Back to idle: not running, progress 0, no label."""
        self.in_progress = False
        self.progress = PROGRESS_START
        self.label = ""
        self._notify()

    def snapshot(self) -> dict:
        return {
            "in_progress": self.in_progress,
            "progress": self.progress,
            "label": self.label,
        }
