"""
preprocessing.py

Inference-time image handling only.

Important:
- We DO NOT normalize here. The HuggingFace processors handle that.
- We decode the user's bytes into a clean PIL RGB image once, and hand
  that same DecodedImage to both collaborators.
- The captioner gets a copy scaled so its longer edge fits a fixed bound.
- Segmentation masks are turned into an alpha channel with OpenCV.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image

import cv2

from capseg_package.intake import SourceImage
from capseg_package.utils.exceptions import DecodeError


@dataclass(frozen=True)
class DecodedImage:
    """Pixel-addressable decoding of a SourceImage (always RGB)."""

    image: Image.Image
    filename: str = ""

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def to_array(self) -> np.ndarray:
        """HxWx3 uint8 RGB pixel buffer."""
        return np.asarray(self.image)


def decode_image(source: Union[SourceImage, bytes]) -> DecodedImage:
    """
    Decode raw image bytes into a DecodedImage.

    Raises
    ------
    DecodeError
        If the bytes are not a readable image.
    """
    if isinstance(source, SourceImage):
        data, filename = source.data, source.filename
    else:
        data, filename = bytes(source), ""

    if not data:
        raise DecodeError(f"{filename or 'image'} is empty")

    try:
        pil_img = Image.open(io.BytesIO(data))
        # Image.open is lazy; force the full decode here
        pil_img.load()
        # Grayscale ("L"), palette and RGBA inputs all become RGB
        rgb = pil_img.convert("RGB")
    except Exception as e:
        # DecompressionBombError and MemoryError are not OSError subclasses
        raise DecodeError(
            f"Could not decode {filename or 'image'}: {type(e).__name__}: {e}", cause=e
        ) from e

    return DecodedImage(image=rgb, filename=filename)


def scale_to_max_edge(image: Image.Image, max_edge: int) -> Image.Image:
    """
    Downscale so that the longer edge is at most `max_edge`, keeping aspect.

    Images already within the bound are returned unchanged.
    """
    width, height = image.size
    if width <= max_edge and height <= max_edge:
        return image

    if width > height:
        new_size = (max_edge, max(1, round(height * max_edge / width)))
    else:
        new_size = (max(1, round(width * max_edge / height)), max_edge)

    return image.resize(new_size, Image.BILINEAR)


def pil_to_cv2(pil_img: Image.Image) -> np.ndarray:
    """Convert a PIL RGB image to an OpenCV BGR numpy array."""
    rgb = np.array(pil_img.convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def apply_alpha_mask(image: Image.Image, mask: np.ndarray) -> np.ndarray:
    """
    Attach `mask` (HxW, 0..255 or bool) as the alpha channel of `image`.

    The mask is resized to the image if needed. Returns a BGRA array.
    """
    bgr = pil_to_cv2(image)
    mask = np.asarray(mask)
    if mask.dtype == bool:
        mask = mask.astype(np.uint8) * 255
    mask = mask.astype(np.uint8)

    h, w = bgr.shape[:2]
    if mask.shape[:2] != (h, w):
        mask = cv2.resize(mask, (w, h), interpolation=cv2.INTER_LINEAR)

    b, g, r = cv2.split(bgr)
    return cv2.merge((b, g, r, mask))


def encode_png(image: Union[Image.Image, np.ndarray]) -> bytes:
    """Encode a PIL image or an OpenCV BGR/BGRA array as PNG bytes."""
    if isinstance(image, Image.Image):
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()

    ok, encoded = cv2.imencode(".png", image)
    if not ok:
        raise ValueError("OpenCV could not encode the image as PNG")
    return encoded.tobytes()
