"""Tests for the voice interview recorder state machine."""

import pytest

from lykr.wizard.recorder import (
    AudioBuffer,
    RecorderError,
    RecorderStatus,
    VoiceInterviewRecorder,
    audio_extension,
    complete_question,
    run_timer,
)
from lykr.wizard.state import initial_questions


@pytest.fixture
def recorder(fake_transcriber) -> VoiceInterviewRecorder:
    return VoiceInterviewRecorder(initial_questions("en"), fake_transcriber, max_seconds=3)


async def _record_take(recorder: VoiceInterviewRecorder, *chunks: bytes) -> None:
    recorder.start("audio/webm;codecs=opus")
    for chunk in chunks or (b"\x1a\x45",):
        recorder.feed(chunk)
    recorder.stop()
    await recorder.transcribe()


@pytest.mark.unit
class TestAudioBuffer:

    def test_release_joins_chunks_once(self):
        buffer = AudioBuffer("audio/webm")
        buffer.append(b"ab")
        buffer.append(b"cd")

        assert buffer.release() == b"abcd"
        assert buffer.released
        with pytest.raises(RecorderError):
            buffer.append(b"ef")

    @pytest.mark.parametrize(
        "mime,ext",
        [("audio/webm;codecs=opus", "webm"), ("audio/mp4", "mp4"), ("audio/ogg", "ogg"), ("", "webm")],
    )
    def test_audio_extension(self, mime, ext):
        assert audio_extension(mime) == ext


@pytest.mark.unit
class TestCompleteQuestion:

    def test_completes_and_promotes_next(self):
        questions = complete_question(initial_questions("en"), 1, "Clinics")

        assert [q.status for q in questions] == ["completed", "current", "pending", "pending"]
        assert questions[0].transcript == "Clinics"

    def test_unknown_id_is_a_no_op(self):
        original = initial_questions("en")

        assert complete_question(original, 99, "x") == original

    def test_no_promotion_while_another_is_current(self):
        original = initial_questions("en")
        questions = complete_question(original, 3, "Early answer")

        assert [q.status for q in questions] == ["current", "pending", "completed", "pending"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestRecorderTransitions:

    async def test_starts_idle_on_first_question(self, recorder):
        assert recorder.status is RecorderStatus.IDLE
        assert recorder.current_question.id == 1
        assert recorder.holds_audio is False

    async def test_record_stop_transcribe(self, recorder, fake_transcriber):
        recorder.start("audio/webm;codecs=opus")
        recorder.feed(b"one")
        recorder.feed(b"two")
        assert recorder.holds_audio

        recorder.stop()
        assert recorder.status is RecorderStatus.TRANSCRIBING
        assert recorder.holds_audio is False

        preview = await recorder.transcribe()

        assert preview == fake_transcriber.text
        assert recorder.status is RecorderStatus.PREVIEWING
        audio, filename, content_type = fake_transcriber.calls[0]
        assert audio == b"onetwo"
        assert filename == "recording.webm"
        assert content_type == "audio/webm;codecs=opus"

    async def test_start_only_from_idle(self, recorder):
        recorder.start()

        with pytest.raises(RecorderError):
            recorder.start()

    async def test_feed_requires_recording(self, recorder):
        with pytest.raises(RecorderError):
            recorder.feed(b"x")

    async def test_ceiling_stops_recording(self, recorder):
        recorder.start()

        assert recorder.tick() is False
        assert recorder.tick() is False
        assert recorder.tick() is True

        assert recorder.elapsed == 3
        assert recorder.status is RecorderStatus.TRANSCRIBING

    async def test_tick_outside_recording_is_ignored(self, recorder):
        assert recorder.tick() is False
        assert recorder.elapsed == 0

    async def test_failed_transcription_stays_transcribing(self, recorder, fake_transcriber):
        fake_transcriber.fail = True

        await _record_take(recorder)

        assert recorder.status is RecorderStatus.TRANSCRIBING
        assert recorder.preview is None
        assert recorder.transcription_failed is True

        fake_transcriber.fail = False
        preview = await recorder.retry()

        assert preview == fake_transcriber.text
        assert recorder.status is RecorderStatus.PREVIEWING
        assert recorder.transcription_failed is False
        assert len(fake_transcriber.calls) == 2

    async def test_edit_then_confirm(self, recorder):
        await _record_take(recorder)

        recorder.toggle_edit()
        assert recorder.status is RecorderStatus.EDITING
        recorder.edit("Clinics that want fewer no-shows")
        answer = recorder.confirm()
        questions = recorder.questions

        assert answer == (1, "Clinics that want fewer no-shows")
        assert questions[0].status == "completed"
        assert questions[0].transcript == "Clinics that want fewer no-shows"
        assert questions[1].status == "current"
        assert recorder.status is RecorderStatus.IDLE
        assert recorder.current_question.id == 2

    async def test_edit_requires_editing(self, recorder):
        await _record_take(recorder)

        with pytest.raises(RecorderError):
            recorder.edit("nope")

    async def test_toggle_edit_back_to_preview(self, recorder):
        await _record_take(recorder)

        recorder.toggle_edit()
        recorder.toggle_edit()

        assert recorder.status is RecorderStatus.PREVIEWING

    async def test_confirm_requires_transcript(self, recorder):
        recorder.start()

        with pytest.raises(RecorderError):
            recorder.confirm()

    async def test_restart_discards_take(self, recorder):
        await _record_take(recorder)

        recorder.restart()

        assert recorder.status is RecorderStatus.RECORDING
        assert recorder.preview is None
        assert recorder.elapsed == 0
        assert recorder.current_question.id == 1

    async def test_restart_while_recording(self, recorder):
        recorder.start()
        recorder.feed(b"first take")
        recorder.tick()

        recorder.restart()
        recorder.feed(b"second")
        recorder.stop()

        assert recorder.elapsed == 0
        assert recorder._audio == b"second"

    async def test_answering_every_question(self, recorder):
        for _ in range(4):
            await _record_take(recorder)
            recorder.confirm()

        assert recorder.all_completed
        assert recorder.current_question is None
        with pytest.raises(RecorderError):
            recorder.start()

    async def test_release_drops_audio(self, recorder):
        recorder.start()
        recorder.feed(b"audio")

        recorder.release()
        recorder.release()

        assert recorder.holds_audio is False

    async def test_snapshot_shape(self, recorder):
        recorder.start()

        snap = recorder.snapshot()

        assert snap["status"] == "recording"
        assert snap["maxSeconds"] == 3
        assert snap["currentQuestionId"] == 1
        assert snap["questions"][0] == {"id": 1, "text": recorder.questions[0].text, "status": "current"}


@pytest.mark.unit
@pytest.mark.asyncio
class TestRunTimer:

    async def test_ticks_until_ceiling(self, recorder):
        recorder.start()
        ticks: list[bool] = []

        async def on_tick(auto_stopped: bool):
            ticks.append(auto_stopped)

        await run_timer(recorder, on_tick, interval=0.001)

        assert ticks == [False, False, True]
        assert recorder.status is RecorderStatus.TRANSCRIBING

    async def test_ends_when_stopped(self, recorder):
        recorder.start()
        ticks: list[bool] = []

        async def on_tick(auto_stopped: bool):
            ticks.append(auto_stopped)
            recorder.stop()

        await run_timer(recorder, on_tick, interval=0.001)

        assert ticks == [False]
