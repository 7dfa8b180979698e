"""Whole-file speech-to-text through the OpenAI transcription API."""

import logging
from typing import Any

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field

from lykr.config import settings
from lykr.middleware.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class TranscriptionError(ExternalServiceError):
    def __init__(self, message: str = "Failed to transcribe audio"):
        super().__init__(message)


class TranscriptionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    segments: list[dict[str, Any]] | None = None
    language: str | None = None
    duration_in_seconds: float | None = Field(default=None, alias="durationInSeconds")


class Transcriber:
    def __init__(self, client: AsyncOpenAI | None = None, model: str = settings.transcription_model):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key or None)
        self.model = model

    async def transcribe(self, audio: bytes, filename: str, content_type: str) -> TranscriptionResult:
        """Raises TranscriptionError on any provider failure."""
        try:
            response = await self.client.audio.transcriptions.create(
                file=(filename, audio, content_type),
                model=self.model,
                response_format="verbose_json",
            )
        except openai.OpenAIError as e:
            logger.error("Transcription request failed: %s", e, exc_info=True)
            raise TranscriptionError() from e

        segments = getattr(response, "segments", None)
        return TranscriptionResult(
            text=response.text,
            segments=[s.model_dump() if hasattr(s, "model_dump") else dict(s) for s in segments]
            if segments else None,
            language=getattr(response, "language", None),
            duration_in_seconds=getattr(response, "duration", None),
        )


_transcriber: Transcriber | None = None


def get_transcriber() -> Transcriber:
    """FastAPI dependency. The client is created on first use."""
    global _transcriber
    if _transcriber is None:
        _transcriber = Transcriber()
    return _transcriber
