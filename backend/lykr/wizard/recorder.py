"""Voice interview recorder: one answer at a time, transcribed whole.

States:
  idle          → no recording in progress for the current question
  recording     → audio chunks are buffered, the timer ticks once a second
  transcribing  → recording stopped, audio handed to the transcriber.
                  A failed transcription stays here with no preview so
                  the user can retry or restart.
  previewing    → transcript available for review
  editing       → transcript being edited (in memory only)

Confirming a preview marks the current question completed and promotes
the next pending question. Restart is allowed from any state and goes
straight back to recording.

The audio buffer is owned by the recorder and released on stop, restart,
release() and every failure path.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from lykr.config import settings
from lykr.schemas.wizard import VoiceInterviewQuestion
from lykr.services.transcription import TranscriptionError

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0


class RecorderStatus(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    PREVIEWING = "previewing"
    EDITING = "editing"


class RecorderError(Exception):
    """An action that is not valid in the recorder's current state."""


class SupportsTranscribe(Protocol):
    async def transcribe(self, audio: bytes, filename: str, content_type: str): ...


def audio_extension(mime_type: str) -> str:
    if "mp4" in mime_type:
        return "mp4"
    if "ogg" in mime_type:
        return "ogg"
    return "webm"


def complete_question(
    questions: tuple[VoiceInterviewQuestion, ...], question_id: int, transcript: str
) -> tuple[VoiceInterviewQuestion, ...]:
    """Mark one question completed and promote the first pending one.

    Nothing is promoted while another question is still current. An
    unknown id leaves the questions untouched.
    """
    if not any(q.id == question_id for q in questions):
        return tuple(questions)
    promoted = any(q.status == "current" and q.id != question_id for q in questions)
    updated = []
    for q in questions:
        if q.id == question_id:
            q = q.model_copy(update={"status": "completed", "transcript": transcript})
        elif q.status == "pending" and not promoted:
            q = q.model_copy(update={"status": "current"})
            promoted = True
        updated.append(q)
    return tuple(updated)


class AudioBuffer:
    """Captured audio for a single take."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        self._chunks: list[bytes] | None = []

    @property
    def released(self) -> bool:
        return self._chunks is None

    def append(self, chunk: bytes) -> None:
        if self._chunks is None:
            raise RecorderError("audio buffer already released")
        self._chunks.append(chunk)

    def release(self) -> bytes:
        """Hand over the captured bytes and drop the buffer."""
        data = b"".join(self._chunks or ())
        self._chunks = None
        return data


class VoiceInterviewRecorder:
    def __init__(
        self,
        questions: tuple[VoiceInterviewQuestion, ...],
        transcriber: SupportsTranscribe,
        max_seconds: int = settings.max_recording_seconds,
    ):
        self.questions = tuple(questions)
        self.transcriber = transcriber
        self.max_seconds = max_seconds
        self.status = RecorderStatus.IDLE
        self.elapsed = 0
        self.preview: str | None = None
        self.transcription_failed = False
        self._buffer: AudioBuffer | None = None
        self._audio: bytes | None = None
        self._mime_type = "audio/webm"

    # ── Queries ─────────────────────────────────────────────

    @property
    def current_question(self) -> VoiceInterviewQuestion | None:
        return next((q for q in self.questions if q.status == "current"), None)

    @property
    def all_completed(self) -> bool:
        return bool(self.questions) and all(q.status == "completed" for q in self.questions)

    @property
    def holds_audio(self) -> bool:
        return self._buffer is not None and not self._buffer.released

    def snapshot(self) -> dict:
        current = self.current_question
        return {
            "status": self.status.value,
            "elapsed": self.elapsed,
            "maxSeconds": self.max_seconds,
            "preview": self.preview,
            "transcriptionFailed": self.transcription_failed,
            "currentQuestionId": current.id if current else None,
            "questions": [q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in self.questions],
        }

    # ── Transitions ─────────────────────────────────────────

    def _require(self, *allowed: RecorderStatus) -> None:
        if self.status not in allowed:
            raise RecorderError(f"not allowed while {self.status.value}")

    def _begin_take(self, mime_type: str | None) -> None:
        if self.current_question is None:
            raise RecorderError("no question left to answer")
        self._discard()
        if mime_type:
            self._mime_type = mime_type
        self._buffer = AudioBuffer(self._mime_type)
        self.elapsed = 0
        self.preview = None
        self.transcription_failed = False
        self.status = RecorderStatus.RECORDING

    def start(self, mime_type: str | None = None) -> None:
        self._require(RecorderStatus.IDLE)
        self._begin_take(mime_type)

    def feed(self, chunk: bytes) -> None:
        self._require(RecorderStatus.RECORDING)
        self._buffer.append(chunk)

    def tick(self) -> bool:
        """Advance the timer one second. True if the ceiling stopped the take."""
        if self.status is not RecorderStatus.RECORDING:
            return False
        self.elapsed += 1
        if self.elapsed >= self.max_seconds:
            self.stop()
            return True
        return False

    def stop(self) -> None:
        self._require(RecorderStatus.RECORDING)
        self._audio = self._buffer.release()
        self._buffer = None
        self.status = RecorderStatus.TRANSCRIBING

    async def transcribe(self) -> str | None:
        """Send the whole take to the transcriber. Failure keeps TRANSCRIBING."""
        self._require(RecorderStatus.TRANSCRIBING)
        if self._audio is None:
            raise RecorderError("no audio to transcribe")
        filename = f"recording.{audio_extension(self._mime_type)}"
        try:
            result = await self.transcriber.transcribe(self._audio, filename, self._mime_type)
        except TranscriptionError:
            logger.warning("Transcription failed for question %s", getattr(self.current_question, "id", None))
            self.preview = None
            self.transcription_failed = True
            return None
        self._audio = None
        self.preview = result.text
        self.transcription_failed = False
        self.status = RecorderStatus.PREVIEWING
        return self.preview

    async def retry(self) -> str | None:
        return await self.transcribe()

    def toggle_edit(self) -> None:
        self._require(RecorderStatus.PREVIEWING, RecorderStatus.EDITING)
        self.status = (
            RecorderStatus.EDITING
            if self.status is RecorderStatus.PREVIEWING
            else RecorderStatus.PREVIEWING
        )

    def edit(self, text: str) -> None:
        self._require(RecorderStatus.EDITING)
        self.preview = text

    def confirm(self) -> tuple[int, str]:
        """Accept the preview for the current question.

        Returns (question id, transcript). The caller applies them with
        complete_question() to the latest persisted questions and hands
        the result back through adopt().
        """
        self._require(RecorderStatus.PREVIEWING, RecorderStatus.EDITING)
        current = self.current_question
        if current is None or self.preview is None:
            raise RecorderError("nothing to confirm")
        answer = (current.id, self.preview)
        self.questions = complete_question(self.questions, *answer)
        self.preview = None
        self.elapsed = 0
        self.status = RecorderStatus.IDLE
        return answer

    def adopt(self, questions: tuple[VoiceInterviewQuestion, ...]) -> None:
        """Replace the question list with the one that was persisted."""
        self.questions = tuple(questions)

    def restart(self, mime_type: str | None = None) -> None:
        self._begin_take(mime_type)

    def _discard(self) -> None:
        if self._buffer is not None:
            self._buffer.release()
            self._buffer = None
        self._audio = None

    def release(self) -> None:
        """Drop any held audio. Safe to call more than once."""
        self._discard()


async def run_timer(
    recorder: VoiceInterviewRecorder,
    on_tick: Callable[[bool], Awaitable[None]],
    interval: float | None = None,
) -> None:
    """Tick once per interval while recording. Ends on stop or ceiling."""
    interval = TICK_INTERVAL_SECONDS if interval is None else interval
    while recorder.status is RecorderStatus.RECORDING:
        await asyncio.sleep(interval)
        if recorder.status is not RecorderStatus.RECORDING:
            break
        auto_stopped = recorder.tick()
        await on_tick(auto_stopped)
        if auto_stopped:
            break
