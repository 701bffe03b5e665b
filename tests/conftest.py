import io

import pytest
from PIL import Image

from capseg_package.config import Settings
from capseg_package.intake import ImageCandidate


def make_png(size=(10, 10), color=(200, 30, 30), mode="RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeProvider:
    """Stands in for InferenceProvider; records the order of calls."""

    def __init__(
        self,
        caption="a solid color image",
        segmented=b"segmented-png",
        caption_exc=None,
        segment_exc=None,
    ):
        self.caption_text = caption
        self.segmented = segmented
        self.caption_exc = caption_exc
        self.segment_exc = segment_exc
        self.calls = []
        self.seen = []

    async def caption(self, decoded):
        self.calls.append("caption")
        self.seen.append(decoded)
        if self.caption_exc is not None:
            raise self.caption_exc
        return self.caption_text

    async def remove_background(self, decoded):
        self.calls.append("segment")
        self.seen.append(decoded)
        if self.segment_exc is not None:
            raise self.segment_exc
        return self.segmented


@pytest.fixture
def settings():
    return Settings(PRELOAD_MODELS=False, ALLOW_HF_FALLBACK=False, DEVICE="cpu")


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_candidate(png_bytes):
    return ImageCandidate(data=png_bytes, media_type="image/png", filename="red.png")


@pytest.fixture
def text_candidate():
    return ImageCandidate(data=b"hello", media_type="text/plain", filename="notes.txt")


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def png_factory():
    return make_png
