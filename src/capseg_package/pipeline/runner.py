"""
runner.py

The two-stage processing pipeline:

    decode (0 -> 20) -> caption (20 -> 50) -> remove background (50 -> 100)

Failure policy:
- decode failure       -> run fails (DecodeError), no model is called
- caption failure      -> fallback caption, the run continues
- segmentation failure -> run fails (SegmentationError)

run() never raises for these; it returns a RunOutcome and leaves user
notification to the caller. It does NOT guard against concurrent calls:
single-flight is the caller's job (see session.py).
"""

from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from capseg_package.config import Settings, get_settings
from capseg_package.intake import SourceImage
from capseg_package.pipeline.state import (
    LABEL_CAPTIONING,
    LABEL_SEGMENTING,
    PROGRESS_CAPTIONED,
    PROGRESS_DECODED,
    CaptionStatus,
    PipelineRun,
    ProcessingResult,
    RunOutcome,
)
from capseg_package.preprocessing import DecodedImage, decode_image
from capseg_package.utils.exceptions import (
    CaptionError,
    DecodeError,
    SegmentationError,
)
from capseg_package.utils.logging import get_logger

logger = get_logger(__name__)


class ProcessingPipeline:
    """
    Runs one SourceImage through both collaborators.

    `provider` must expose:
        async caption(DecodedImage) -> str
        async remove_background(DecodedImage) -> bytes
    """

    def __init__(self, provider, settings: Optional[Settings] = None):
        self.provider = provider
        self.settings = settings or get_settings()

    async def run(self, source: SourceImage, run: Optional[PipelineRun] = None) -> RunOutcome:
        run = run or PipelineRun()
        run.start()
        logger.info(f"Processing {source.filename!r} ({source.size} bytes)")

        # 1) decode
        try:
            decoded = await asyncio.to_thread(decode_image, source)
        except DecodeError as e:
            logger.error(f"Decode failed: {e}")
            return run.fail(e)
        run.update(PROGRESS_DECODED)

        # 2) caption (fail-soft)
        run.update(label=LABEL_CAPTIONING)
        caption, caption_status, caption_error = await self._caption(decoded)
        run.update(PROGRESS_CAPTIONED)

        # 3) background removal (fatal on failure)
        run.update(label=LABEL_SEGMENTING)
        try:
            segmented = await self.provider.remove_background(decoded)
            if not segmented:
                raise ValueError("segmentation returned no image")
        except Exception as e:
            logger.exception(f"Segmentation failed for {source.filename!r}")
            return run.fail(SegmentationError(f"Failed to remove background: {e}", cause=e))

        # 4) assemble
        result = ProcessingResult(
            original=source,
            segmented=bytes(segmented),
            caption=caption,
            caption_status=caption_status,
            caption_error=caption_error,
        )
        logger.info(f"Processed {source.filename!r}: caption={caption!r} ({caption_status.value})")
        return run.succeed(result)

    async def _caption(self, decoded: DecodedImage) -> Tuple[str, CaptionStatus, Optional[CaptionError]]:
        try:
            text = await self.provider.caption(decoded)
        except Exception as e:
            error = CaptionError(f"Error generating caption: {e}", cause=e)
            logger.warning(f"{error.message}; using fallback caption")
            return self.settings.FALLBACK_CAPTION, CaptionStatus.FALLBACK, error

        text = (text or "").strip()
        if not text:
            logger.warning("Captioner returned no text")
            return self.settings.EMPTY_CAPTION, CaptionStatus.EMPTY, None

        return text, CaptionStatus.GENERATED, None
