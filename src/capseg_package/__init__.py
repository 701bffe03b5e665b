"""
capseg_package/__init__.py

This is the public entrypoint of the package.

Anything we import here becomes easy to access like:

    from capseg_package import InferenceProvider, ProcessingPipeline, Session

The usual wiring is:

    provider = InferenceProvider()            # owns both models, loads lazily
    pipeline = ProcessingPipeline(provider)   # decode -> caption -> segment
    session = Session(pipeline)               # intake + single-flight state
"""

from capseg_package.inference.provider import InferenceProvider
from capseg_package.intake import ImageCandidate, ImageIntake, SourceImage
from capseg_package.pipeline import (
    CaptionStatus,
    PipelineRun,
    ProcessingPipeline,
    ProcessingResult,
    RunOutcome,
)
from capseg_package.session import Session

# Define what should be considered "public" in this package
__all__ = [
    "InferenceProvider",
    "ImageCandidate",
    "ImageIntake",
    "SourceImage",
    "CaptionStatus",
    "PipelineRun",
    "ProcessingPipeline",
    "ProcessingResult",
    "RunOutcome",
    "Session",
]
