import io

import numpy as np
import pytest
from PIL import Image

from capseg_package.intake import SourceImage
from capseg_package.preprocessing import (
    DecodedImage,
    apply_alpha_mask,
    decode_image,
    encode_png,
    scale_to_max_edge,
)
from capseg_package.utils.exceptions import DecodeError, ErrorKind


def test_decode_source_image(png_bytes):
    decoded = decode_image(SourceImage(data=png_bytes, media_type="image/png", filename="red.png"))

    assert isinstance(decoded, DecodedImage)
    assert (decoded.width, decoded.height) == (10, 10)
    assert decoded.filename == "red.png"
    pixels = decoded.to_array()
    assert pixels.shape == (10, 10, 3)
    assert tuple(pixels[0, 0]) == (200, 30, 30)


def test_decode_converts_to_rgb(png_factory):
    decoded = decode_image(png_factory(mode="L", color=128))
    assert decoded.image.mode == "RGB"


@pytest.mark.parametrize("data", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\n truncated"])
def test_decode_rejects_garbage(data):
    with pytest.raises(DecodeError) as exc:
        decode_image(SourceImage(data=data, media_type="image/png", filename="bad.png"))
    assert exc.value.kind is ErrorKind.DECODE_ERROR


@pytest.mark.parametrize(
    "size, expected",
    [
        ((800, 400), (384, 192)),
        ((300, 900), (128, 384)),
        ((384, 384), (384, 384)),
        ((100, 50), (100, 50)),
    ],
)
def test_scale_to_max_edge(size, expected):
    scaled = scale_to_max_edge(Image.new("RGB", size), 384)
    assert scaled.size == expected


def test_apply_alpha_mask_resizes_mask():
    image = Image.new("RGB", (8, 4), (10, 20, 30))
    mask = np.zeros((2, 4), dtype=np.uint8)
    mask[:, 2:] = 255

    bgra = apply_alpha_mask(image, mask)

    assert bgra.shape == (4, 8, 4)
    assert tuple(bgra[0, 0, :3]) == (30, 20, 10)
    assert bgra[0, 0, 3] == 0
    assert bgra[0, 7, 3] == 255


def test_encode_png_from_array_and_pil():
    bgra = np.zeros((3, 5, 4), dtype=np.uint8)
    from_array = Image.open(io.BytesIO(encode_png(bgra)))
    assert from_array.size == (5, 3)
    assert from_array.mode == "RGBA"

    from_pil = Image.open(io.BytesIO(encode_png(Image.new("RGBA", (2, 2)))))
    assert from_pil.format == "PNG"


def test_decompression_bomb_becomes_decode_error(png_bytes, monkeypatch):
    # 10x10 = 100 pixels, above twice the limit
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 20)

    with pytest.raises(DecodeError) as exc:
        decode_image(SourceImage(data=png_bytes, media_type="image/png", filename="bomb.png"))

    assert isinstance(exc.value.cause, Image.DecompressionBombError)


def test_memory_error_becomes_decode_error(png_bytes, monkeypatch):
    def out_of_memory(*args, **kwargs):
        raise MemoryError()

    monkeypatch.setattr(Image, "open", out_of_memory)

    with pytest.raises(DecodeError) as exc:
        decode_image(png_bytes)

    assert isinstance(exc.value.cause, MemoryError)
