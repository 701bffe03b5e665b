import pytest

from capseg_package.intake import (
    ORIGIN_DROP,
    ImageCandidate,
    ImageIntake,
    SourceImage,
    is_image_media_type,
)
from capseg_package.pipeline.state import ProcessingResult
from capseg_package.utils.exceptions import ErrorKind, InvalidInputError, InvalidMediaType


def test_submit_accepts_image(png_candidate):
    intake = ImageIntake()
    source = intake.submit(png_candidate)

    assert isinstance(source, SourceImage)
    assert source.filename == "red.png"
    assert source.media_type == "image/png"
    assert source.size == len(png_candidate.data)
    assert intake.current is source


@pytest.mark.parametrize("media_type", ["text/plain", "application/pdf", "", None, "video/mp4"])
def test_submit_rejects_non_images(media_type):
    intake = ImageIntake()
    candidate = ImageCandidate(data=b"x", media_type=media_type, filename="f")

    with pytest.raises(InvalidMediaType) as exc:
        intake.submit(candidate)

    assert exc.value.kind is ErrorKind.INVALID_MEDIA_TYPE
    assert isinstance(exc.value, InvalidInputError)
    assert intake.current is None


def test_rejection_keeps_previous_image_and_result(png_candidate, text_candidate):
    intake = ImageIntake()
    source = intake.submit(png_candidate)
    result = ProcessingResult(original=source, segmented=b"png", caption="c")
    intake.hold_result(result)

    with pytest.raises(InvalidMediaType):
        intake.submit(text_candidate)

    assert intake.current is source
    assert intake.result is result


def test_new_selection_clears_result(png_candidate, png_factory):
    intake = ImageIntake()
    source = intake.submit(png_candidate)
    intake.hold_result(ProcessingResult(original=source, segmented=b"png", caption="c"))

    other = ImageCandidate(data=png_factory(color=(0, 0, 255)), media_type="image/png", filename="blue.png")
    intake.submit(other)

    assert intake.result is None
    assert intake.current.filename == "blue.png"


def test_selecting_same_image_twice_is_idempotent(png_candidate):
    once = ImageIntake()
    once.submit(png_candidate)

    twice = ImageIntake()
    twice.submit(png_candidate)
    twice.submit(png_candidate)

    assert once.current == twice.current
    assert once.result is None and twice.result is None


def test_drop_and_picker_are_equivalent(png_bytes):
    picked = ImageIntake().submit(ImageCandidate(png_bytes, "image/png", "a.png"))
    dropped = ImageIntake().submit(ImageCandidate(png_bytes, "image/png", "a.png", origin=ORIGIN_DROP))
    assert picked == dropped


def test_candidate_from_path(tmp_path, png_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes)

    candidate = ImageCandidate.from_path(path)

    assert candidate.media_type == "image/png"
    assert candidate.filename == "photo.png"
    assert candidate.data == png_bytes


def test_size_mb():
    source = SourceImage(data=b"\0" * (3 * 1024 * 1024 // 2), media_type="image/jpeg", filename="x.jpg")
    assert source.size_mb == 1.5


def test_media_type_prefix_is_case_insensitive():
    assert is_image_media_type("IMAGE/PNG")
    assert not is_image_media_type("imagex/png")
