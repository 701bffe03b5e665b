"""
intake.py

Image intake: turns whatever the user offered (file chooser pick or a
drag-and-drop) into a validated SourceImage.

Rules:
- Only media types starting with "image/" are accepted.
- A rejected candidate leaves the held image and result untouched.
- Accepting a new image releases the previously held ProcessingResult.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from capseg_package.utils.exceptions import InvalidMediaType
from capseg_package.utils.logging import get_logger

if TYPE_CHECKING:
    from capseg_package.pipeline.state import ProcessingResult

logger = get_logger(__name__)

IMAGE_TYPE_PREFIX = "image/"

# Both user actions feed the same submit() path
ORIGIN_PICKER = "picker"
ORIGIN_DROP = "drop"


@dataclass(frozen=True)
class ImageCandidate:
    """A file the user offered, before validation."""

    data: bytes
    media_type: Optional[str]
    filename: str
    origin: str = ORIGIN_PICKER

    @classmethod
    def from_path(cls, path: Union[str, Path], origin: str = ORIGIN_PICKER) -> "ImageCandidate":
        path = Path(path)
        media_type, _ = mimetypes.guess_type(path.name)
        return cls(
            data=path.read_bytes(),
            media_type=media_type,
            filename=path.name,
            origin=origin,
        )


@dataclass(frozen=True)
class SourceImage:
    """An accepted image. Immutable once constructed."""

    data: bytes = field(repr=False)
    media_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return round(self.size / 1024 / 1024, 2)


def is_image_media_type(media_type: Optional[str]) -> bool:
    return bool(media_type) and media_type.lower().startswith(IMAGE_TYPE_PREFIX)


class ImageIntake:
    """Holds the current SourceImage and the result derived from it."""

    def __init__(self):
        self._current: Optional[SourceImage] = None
        self._result: Optional["ProcessingResult"] = None

    @property
    def current(self) -> Optional[SourceImage]:
        return self._current

    @property
    def result(self) -> Optional["ProcessingResult"]:
        return self._result

    def submit(self, candidate: ImageCandidate) -> SourceImage:
        """
        Validate a candidate and make it the current image.

        Raises
        ------
        InvalidMediaType
            If the declared media type is not an image type.
        """
        if not is_image_media_type(candidate.media_type):
            logger.info(
                f"Rejected {candidate.filename!r} ({candidate.media_type or 'no media type'})"
            )
            raise InvalidMediaType(
                f"{candidate.filename or 'file'} is not an image "
                f"(media type: {candidate.media_type or 'unknown'})"
            )

        source = SourceImage(
            data=bytes(candidate.data),
            media_type=candidate.media_type,
            filename=candidate.filename,
        )
        self._current = source
        self.clear_result()

        logger.info(
            f"Accepted {source.filename!r} via {candidate.origin} "
            f"({source.media_type}, {source.size} bytes)"
        )
        return source

    def hold_result(self, result: "ProcessingResult") -> None:
        self._result = result

    def clear_result(self) -> None:
        # Dropping the reference releases the segmented bytes for collection
        if self._result is not None:
            logger.debug(f"Released result {self._result.id}")
        self._result = None
