"""POST /api/transcribe: one audio file in, transcript out."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from lykr.auth.deps import get_current_user
from lykr.models.user import User
from lykr.services.transcription import Transcriber, TranscriptionResult, get_transcriber

router = APIRouter()


@router.post("", response_model=TranscriptionResult, response_model_by_alias=True)
async def transcribe(
    audio: UploadFile | None = File(None),
    _user: User = Depends(get_current_user),
    transcriber: Transcriber = Depends(get_transcriber),
):
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")

    content = await audio.read()
    await audio.close()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")

    return await transcriber.transcribe(
        content,
        audio.filename or "recording.webm",
        audio.content_type or "audio/webm",
    )
