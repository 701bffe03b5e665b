"""
segmenter.py

Background removal collaborator built on a transformers
"image-segmentation" pipeline.

Two output shapes are supported:
- a cut-out PIL image (RMBG-style remote-code pipelines return the input
  with an alpha channel already applied)
- the standard list of segments [{"label": ..., "mask": PIL "L"}, ...];
  every segment not labelled as background is kept, the union of their
  masks becomes the alpha channel.

Either way the result is PNG bytes.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

import numpy as np
import torch
from PIL import Image
from transformers import pipeline

from capseg_package.preprocessing import apply_alpha_mask, encode_png
from capseg_package.utils.logging import get_logger

logger = get_logger(__name__)

BACKGROUND_LABELS = frozenset({"background", "bg", "wall", "sky", "floor"})


def foreground_mask(segments: Iterable[dict], size) -> np.ndarray:
    """
    Union of all non-background segment masks, as a HxW uint8 array.

    `size` is the (width, height) of the source image.
    """
    width, height = size
    combined = np.zeros((height, width), dtype=np.uint8)

    for segment in segments:
        label = str(segment.get("label", "")).strip().lower()
        if label in BACKGROUND_LABELS:
            continue

        mask = segment["mask"]
        if isinstance(mask, Image.Image):
            if mask.size != (width, height):
                mask = mask.resize((width, height), Image.NEAREST)
            mask = np.asarray(mask.convert("L"))
        combined = np.maximum(combined, np.asarray(mask, dtype=np.uint8))

    return combined


class BackgroundRemover:
    """Wraps an image-segmentation pipeline; call remove() per image."""

    def __init__(self, segment_fn: Callable[[Image.Image], Any]):
        self._segment = segment_fn

    @classmethod
    def from_pretrained(
        cls,
        model_source: str,
        device: torch.device,
        local_files_only: bool = True,
        trust_remote_code: bool = False,
    ) -> "BackgroundRemover":
        logger.info(
            f"Loading segmentation pipeline from {model_source} "
            f"({'local only' if local_files_only else 'hub allowed'})"
        )
        segment_fn = pipeline(
            "image-segmentation",
            model=model_source,
            device=device,
            trust_remote_code=trust_remote_code,
            model_kwargs={"local_files_only": local_files_only},
        )
        return cls(segment_fn)

    def remove(self, image: Image.Image) -> bytes:
        output = self._segment(image)
        return self._to_png(image, output)

    @staticmethod
    def _to_png(image: Image.Image, output: Any) -> bytes:
        if isinstance(output, Image.Image):
            # Already a cut-out
            return encode_png(output.convert("RGBA"))

        if isinstance(output, (list, tuple)):
            mask: Optional[np.ndarray] = None
            if output:
                mask = foreground_mask(output, image.size)
            if mask is None or not mask.any():
                raise ValueError("Segmentation found no foreground")
            return encode_png(apply_alpha_mask(image, mask))

        raise TypeError(
            f"Unsupported segmentation output type: {type(output).__name__}"
        )
