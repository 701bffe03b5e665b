"""
provider.py

InferenceProvider: the one object that owns both collaborators.

    - caption(decoded)            -> str    (captioning model)
    - remove_background(decoded)  -> bytes  (segmentation model, PNG)

Design goals:
- Each model is loaded lazily, at most ONCE per provider, and reused.
- Loading is guarded by a per-instance lock (double-checked), so two runs
  racing at startup cannot double-load.
- The event loop is never blocked: load + inference run in a worker thread.
- Factories are injectable so tests never touch real weights.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

from capseg_package.config import Settings, get_settings
from capseg_package.models import registry
from capseg_package.preprocessing import DecodedImage, scale_to_max_edge
from capseg_package.utils.exceptions import ModelLoadError
from capseg_package.utils.logging import get_logger

logger = get_logger(__name__)


class InferenceProvider:
    """
    Lazily loaded captioning + segmentation collaborators.

    Parameters
    ----------
    settings:
        Settings used by the default factories and for CAPTION_MAX_EDGE.
    captioner_factory:
        Callable(settings) -> object with .generate(PIL.Image) -> str.
    segmenter_factory:
        Callable(settings) -> object with .remove(PIL.Image) -> bytes.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        captioner_factory: Optional[Callable[[Settings], Any]] = None,
        segmenter_factory: Optional[Callable[[Settings], Any]] = None,
    ):
        self.settings = settings or get_settings()
        self._captioner_factory = captioner_factory or registry.load_captioner
        self._segmenter_factory = segmenter_factory or registry.load_segmenter

        self._captioner = None
        self._segmenter = None

        # One lock per collaborator: loading one must not wait on the other
        self._captioner_lock = threading.Lock()
        self._segmenter_lock = threading.Lock()

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------
    @property
    def captioner_loaded(self) -> bool:
        return self._captioner is not None

    @property
    def segmenter_loaded(self) -> bool:
        return self._segmenter is not None

    def load_captioner(self):
        """Load the captioning model ONCE and return it."""
        if self._captioner is not None:
            return self._captioner

        with self._captioner_lock:
            # Double-check inside lock
            if self._captioner is None:
                logger.info("Initializing image captioning model...")
                self._captioner = self._captioner_factory(self.settings)
                logger.info("Image captioning model loaded")

        return self._captioner

    def load_segmenter(self):
        """Load the segmentation model ONCE and return it."""
        if self._segmenter is not None:
            return self._segmenter

        with self._segmenter_lock:
            if self._segmenter is None:
                logger.info("Initializing segmentation model...")
                self._segmenter = self._segmenter_factory(self.settings)
                logger.info("Segmentation model loaded")

        return self._segmenter

    def warmup(self) -> None:
        """
        Load both models up front (FastAPI startup).

        A captioner that cannot load is only logged: captions fall back per
        run and loading is retried lazily. The segmenter must load.
        """
        try:
            self.load_captioner()
        except ModelLoadError as e:
            logger.warning(f"Captioner unavailable at startup, captions will fall back: {e}")
        self.load_segmenter()

    # ------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------
    def _caption_sync(self, decoded: DecodedImage) -> str:
        model = self.load_captioner()
        image = scale_to_max_edge(decoded.image, self.settings.CAPTION_MAX_EDGE)
        logger.info(
            f"Generating caption for {decoded.filename or 'image'} "
            f"at {image.width}x{image.height}"
        )
        return model.generate(image)

    def _remove_background_sync(self, decoded: DecodedImage) -> bytes:
        model = self.load_segmenter()
        logger.info(
            f"Removing background from {decoded.filename or 'image'} "
            f"at {decoded.width}x{decoded.height}"
        )
        return model.remove(decoded.image)

    async def caption(self, decoded: DecodedImage) -> str:
        return await asyncio.to_thread(self._caption_sync, decoded)

    async def remove_background(self, decoded: DecodedImage) -> bytes:
        return await asyncio.to_thread(self._remove_background_sync, decoded)
