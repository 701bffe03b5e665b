"""
session.py

One user's session: which image is selected, whether a run is active,
and what the last run produced.

States (exactly one at a time):

    Idle                      nothing selected
    Selected(source)          image chosen, ready to process
    Running(source, run)      pipeline in flight (intake disabled)
    Succeeded(source, result) result available
    Failed(source, error)     last run failed; source kept for retry

Transitions:

    Idle/Selected/Succeeded/Failed --select_image--> Selected
    Selected/Failed --start_processing--> Running --> Succeeded | Failed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from capseg_package.intake import ImageCandidate, ImageIntake, SourceImage
from capseg_package.pipeline.runner import ProcessingPipeline
from capseg_package.pipeline.state import PipelineRun, ProcessingResult, RunOutcome
from capseg_package.utils.exceptions import (
    InvalidMediaType,
    NoImageSelectedError,
    PipelineBusyError,
    PipelineError,
    ResultAlreadyAvailableError,
)
from capseg_package.utils.logging import get_logger

logger = get_logger(__name__)

MSG_INVALID_TYPE = "Please select a valid image file"
MSG_SUCCESS = "Image processed successfully!"
MSG_FAILURE = "Failed to process image. Please try again."


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class Selected:
    source: SourceImage
    name = "selected"


@dataclass(frozen=True)
class Running:
    source: SourceImage
    run: PipelineRun
    name = "running"


@dataclass(frozen=True)
class Succeeded:
    source: SourceImage
    result: ProcessingResult
    name = "succeeded"


@dataclass(frozen=True)
class Failed:
    source: SourceImage
    error: PipelineError
    name = "failed"


SessionState = Union[Idle, Selected, Running, Succeeded, Failed]


@dataclass(frozen=True)
class Notification:
    level: str  # "success" | "error"
    message: str


class Session:
    """Single-flight owner of one intake + one pipeline."""

    def __init__(self, pipeline: ProcessingPipeline, intake: Optional[ImageIntake] = None):
        self.pipeline = pipeline
        self.intake = intake or ImageIntake()
        self.state: SessionState = Idle()
        self.notification: Optional[Notification] = None

    @property
    def busy(self) -> bool:
        return isinstance(self.state, Running)

    @property
    def result(self) -> Optional[ProcessingResult]:
        return self.state.result if isinstance(self.state, Succeeded) else None

    def select_image(self, candidate: ImageCandidate) -> SourceImage:
        if self.busy:
            raise PipelineBusyError("Cannot select a new image while processing")

        try:
            source = self.intake.submit(candidate)
        except InvalidMediaType:
            self.notification = Notification("error", MSG_INVALID_TYPE)
            raise

        self.state = Selected(source)
        self.notification = None
        return source

    async def start_processing(self) -> RunOutcome:
        state = self.state
        if isinstance(state, Running):
            raise PipelineBusyError("A run is already in progress")
        if isinstance(state, Idle):
            raise NoImageSelectedError("Select an image first")
        if isinstance(state, Succeeded):
            raise ResultAlreadyAvailableError("This image has already been processed")

        source = state.source
        run = PipelineRun()
        # Enter Running before the first await so a second call sees it
        self.state = Running(source, run)
        self.intake.clear_result()

        try:
            outcome = await self.pipeline.run(source, run)
        except BaseException:
            # Cancellation or an unexpected crash: never leave the session stuck
            logger.exception(f"Run for {source.filename!r} aborted")
            if run.in_progress:
                run.reset()
            self.state = Selected(source)
            self.notification = Notification("error", MSG_FAILURE)
            raise

        if outcome.ok:
            self.intake.hold_result(outcome.result)
            self.state = Succeeded(source, outcome.result)
            self.notification = Notification("success", MSG_SUCCESS)
        else:
            logger.error(f"Run failed ({outcome.error.kind.value}): {outcome.error.message}")
            self.state = Failed(source, outcome.error)
            self.notification = Notification("error", MSG_FAILURE)
        return outcome

    def view(self) -> dict:
        """Everything the presentation layer needs, as plain data."""
        state = self.state
        source = getattr(state, "source", None)
        run = state.run if isinstance(state, Running) else None
        result = self.result
        error = state.error if isinstance(state, Failed) else None

        return {
            "state": state.name,
            "file": None if source is None else {
                "name": source.filename,
                "media_type": source.media_type,
                "size_mb": source.size_mb,
            },
            "show_process_button": isinstance(state, (Selected, Failed)),
            "progress": run.snapshot() if run else None,
            "result": None if result is None else {
                "id": result.id,
                "caption": result.caption,
                "caption_status": result.caption_status.value,
                "caption_error": result.caption_error.message if result.caption_error else None,
            },
            "error": error.to_dict() if error else None,
            "notification": None if self.notification is None else {
                "level": self.notification.level,
                "message": self.notification.message,
            },
        }
