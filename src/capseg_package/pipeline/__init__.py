from capseg_package.pipeline.runner import ProcessingPipeline
from capseg_package.pipeline.state import (
    CaptionStatus,
    PipelineRun,
    ProcessingResult,
    RunOutcome,
)

__all__ = [
    "ProcessingPipeline",
    "CaptionStatus",
    "PipelineRun",
    "ProcessingResult",
    "RunOutcome",
]
