import asyncio

import pytest

from capseg_package.intake import ImageCandidate
from capseg_package.pipeline import ProcessingPipeline
from capseg_package.session import (
    MSG_FAILURE,
    MSG_INVALID_TYPE,
    MSG_SUCCESS,
    Failed,
    Idle,
    Running,
    Selected,
    Session,
    Succeeded,
)
from capseg_package.utils.exceptions import (
    ErrorKind,
    InvalidMediaType,
    NoImageSelectedError,
    PipelineBusyError,
    ResultAlreadyAvailableError,
)


@pytest.fixture
def make_session(fake_provider_cls, settings):
    def _make(**provider_kwargs):
        provider = fake_provider_cls(**provider_kwargs)
        return Session(ProcessingPipeline(provider, settings)), provider

    return _make


def test_starts_idle(make_session):
    session, _ = make_session()
    assert isinstance(session.state, Idle)
    assert session.view()["state"] == "idle"
    assert session.view()["show_process_button"] is False


def test_select_then_process_succeeds(make_session, png_candidate):
    session, _ = make_session()
    session.select_image(png_candidate)
    assert isinstance(session.state, Selected)
    assert session.view()["show_process_button"] is True

    outcome = asyncio.run(session.start_processing())

    assert outcome.ok
    assert isinstance(session.state, Succeeded)
    assert session.result is outcome.result
    assert session.intake.result is outcome.result
    assert session.notification.message == MSG_SUCCESS

    view = session.view()
    assert view["state"] == "succeeded"
    assert view["result"]["caption"] == "a solid color image"
    assert view["show_process_button"] is False


def test_invalid_type_creates_no_run_and_keeps_state(make_session, png_candidate, text_candidate):
    session, provider = make_session()
    session.select_image(png_candidate)
    before = session.state

    with pytest.raises(InvalidMediaType):
        session.select_image(text_candidate)

    assert session.state is before
    assert session.notification.message == MSG_INVALID_TYPE
    assert provider.calls == []


def test_invalid_type_from_idle(make_session, text_candidate):
    session, _ = make_session()
    with pytest.raises(InvalidMediaType):
        session.select_image(text_candidate)
    assert isinstance(session.state, Idle)


def test_segmentation_failure_keeps_source_for_retry(make_session, png_candidate):
    session, provider = make_session(segment_exc=RuntimeError("boom"))
    source = session.select_image(png_candidate)

    outcome = asyncio.run(session.start_processing())

    assert not outcome.ok
    assert isinstance(session.state, Failed)
    assert session.state.source is source
    assert session.result is None
    assert session.notification.message == MSG_FAILURE
    assert session.view()["error"]["kind"] == ErrorKind.SEGMENTATION_ERROR.value
    assert session.view()["show_process_button"] is True

    # retry without re-selecting
    provider.segment_exc = None
    outcome = asyncio.run(session.start_processing())
    assert outcome.ok
    assert isinstance(session.state, Succeeded)


def test_caption_failure_still_succeeds(make_session, png_candidate, settings):
    session, _ = make_session(caption_exc=RuntimeError("caption model down"))
    session.select_image(png_candidate)

    outcome = asyncio.run(session.start_processing())

    assert isinstance(session.state, Succeeded)
    assert outcome.result.caption == settings.FALLBACK_CAPTION


def test_process_without_image(make_session):
    session, _ = make_session()
    with pytest.raises(NoImageSelectedError):
        asyncio.run(session.start_processing())


def test_process_twice_is_rejected(make_session, png_candidate):
    session, provider = make_session()
    session.select_image(png_candidate)
    asyncio.run(session.start_processing())

    with pytest.raises(ResultAlreadyAvailableError):
        asyncio.run(session.start_processing())
    assert provider.calls == ["caption", "segment"]


def test_new_selection_invalidates_result(make_session, png_candidate):
    session, _ = make_session()
    session.select_image(png_candidate)
    asyncio.run(session.start_processing())

    session.select_image(png_candidate)

    assert isinstance(session.state, Selected)
    assert session.result is None
    assert session.intake.result is None


def test_selecting_same_image_twice_is_idempotent(make_session, png_candidate):
    once, _ = make_session()
    once.select_image(png_candidate)

    twice, _ = make_session()
    twice.select_image(png_candidate)
    twice.select_image(png_candidate)

    assert once.state == twice.state
    assert once.view() == twice.view()


def test_single_flight(make_session, png_candidate, png_factory):
    session, provider = make_session()
    session.select_image(png_candidate)
    seen = {}

    original_caption = provider.caption

    async def slow_caption(decoded):
        seen["state"] = session.state
        await seen["release"].wait()
        return await original_caption(decoded)

    provider.caption = slow_caption

    async def scenario():
        seen["release"] = asyncio.Event()
        task = asyncio.create_task(session.start_processing())
        while "state" not in seen:
            await asyncio.sleep(0)

        assert session.busy
        with pytest.raises(PipelineBusyError):
            await session.start_processing()
        with pytest.raises(PipelineBusyError):
            session.select_image(
                ImageCandidate(png_factory(color=(0, 0, 0)), "image/png", "black.png")
            )
        progress = session.view()["progress"]
        assert progress["in_progress"] is True
        assert progress["label"] == "Generating caption..."
        assert progress["progress"] == 20

        seen["release"].set()
        return await task

    outcome = asyncio.run(scenario())

    assert isinstance(seen["state"], Running)
    assert outcome.ok
    assert isinstance(session.state, Succeeded)
    assert session.state.source.filename == "red.png"


def test_aborted_run_resets_to_idle(png_candidate):
    observed = []

    class CrashingPipeline:
        async def run(self, source, run):
            run.subscribe(lambda r: observed.append((r.progress, r.in_progress)))
            run.start()
            run.update(20)
            raise asyncio.CancelledError()

    session = Session(CrashingPipeline())
    session.select_image(png_candidate)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(session.start_processing())

    assert (20, True) in observed
    assert observed[-1] == (0, False)
    assert isinstance(session.state, Selected)
    assert session.notification.message == MSG_FAILURE
    assert session.view()["show_process_button"] is True
