"""Tests for the transcription endpoint and the OpenAI adapter."""

from types import SimpleNamespace

import httpx
import openai
import pytest
from httpx import AsyncClient

from lykr.services.transcription import Transcriber, TranscriptionError


class StubTranscriptions:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.kwargs: dict | None = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.response


def _stub_client(transcriptions: StubTranscriptions):
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))


@pytest.mark.unit
@pytest.mark.asyncio
class TestTranscriber:

    async def test_maps_verbose_response(self):
        stub = StubTranscriptions(SimpleNamespace(
            text="hello there",
            segments=[{"id": 0, "start": 0.0, "end": 0.8, "text": "hello there"}],
            language="english",
            duration=0.8,
        ))
        transcriber = Transcriber(client=_stub_client(stub), model="whisper-1")

        result = await transcriber.transcribe(b"audio", "recording.webm", "audio/webm")

        assert result.text == "hello there"
        assert result.duration_in_seconds == 0.8
        assert result.segments[0]["end"] == 0.8
        assert stub.kwargs["file"] == ("recording.webm", b"audio", "audio/webm")
        assert stub.kwargs["model"] == "whisper-1"
        assert stub.kwargs["response_format"] == "verbose_json"

    async def test_provider_failure(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
        transcriber = Transcriber(client=_stub_client(StubTranscriptions(error=error)))

        with pytest.raises(TranscriptionError):
            await transcriber.transcribe(b"audio", "recording.webm", "audio/webm")


@pytest.mark.api
@pytest.mark.asyncio
class TestTranscribeEndpoint:

    async def test_transcribes_upload(self, client: AsyncClient, auth_headers, fake_transcriber):
        response = await client.post(
            "/api/transcribe",
            files={"audio": ("recording.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["text"] == fake_transcriber.text
        assert body["durationInSeconds"] == 1.5
        assert body["language"] == "english"
        assert fake_transcriber.calls == [(b"\x1a\x45\xdf\xa3", "recording.webm", "audio/webm")]

    async def test_missing_file(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/transcribe", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No audio file provided"

    async def test_empty_file(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/transcribe",
            files={"audio": ("recording.webm", b"", "audio/webm")},
            headers=auth_headers,
        )

        assert response.status_code == 400

    async def test_provider_failure(self, client: AsyncClient, auth_headers, fake_transcriber):
        fake_transcriber.fail = True

        response = await client.post(
            "/api/transcribe",
            files={"audio": ("recording.webm", b"audio", "audio/webm")},
            headers=auth_headers,
        )

        assert response.status_code == 502
        assert response.json()["error"]["message"] == "Failed to transcribe audio"

    async def test_requires_login(self, client: AsyncClient):
        response = await client.post(
            "/api/transcribe", files={"audio": ("recording.webm", b"audio", "audio/webm")}
        )

        assert response.status_code == 401
