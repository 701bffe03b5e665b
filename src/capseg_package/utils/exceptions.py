from enum import Enum


class ErrorKind(str, Enum):
    INVALID_MEDIA_TYPE = "InvalidMediaType"
    DECODE_ERROR = "DecodeError"
    CAPTION_ERROR = "CaptionError"
    SEGMENTATION_ERROR = "SegmentationError"


class ModelLoadError(RuntimeError):
    """Raised when a model cannot be loaded."""
    pass

class InvalidInputError(ValueError):
    """Raised when user input is invalid (missing file, bad type, etc.)."""
    pass


class PipelineError(Exception):
    """Base class for failures reported by intake and the processing pipeline."""

    kind: ErrorKind = None

    def __init__(self, message: str = "", cause: BaseException = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}

class InvalidMediaType(PipelineError, InvalidInputError):
    """The selected file does not declare an image/* media type."""
    kind = ErrorKind.INVALID_MEDIA_TYPE

class DecodeError(PipelineError):
    """The selected bytes could not be decoded as an image."""
    kind = ErrorKind.DECODE_ERROR

class CaptionError(PipelineError):
    """Caption generation failed. Never fatal to a run."""
    kind = ErrorKind.CAPTION_ERROR

class SegmentationError(PipelineError):
    """Background removal failed. Fatal to a run."""
    kind = ErrorKind.SEGMENTATION_ERROR


class SessionError(RuntimeError):
    """Raised when a user intent is not allowed in the current session state."""
    pass

class PipelineBusyError(SessionError):
    pass

class NoImageSelectedError(SessionError):
    pass

class ResultAlreadyAvailableError(SessionError):
    pass
