"""Onboarding wizard: six steps with per-session save/resume.

Endpoints:
  GET    /api/wizard/                   → document + completed steps
  DELETE /api/wizard/                   → reset to defaults
  GET    /api/wizard/steps/{key}        → progress, back/next routes, can_continue
  POST   /api/wizard/steps/{key}        → save a step, guarded by its completion check
  POST   /api/wizard/steps/{key}/skip   → advance past an optional step
  POST   /api/wizard/documents          → upload (metadata only is kept)
  DELETE /api/wizard/documents/{index}  → remove document metadata
  POST   /api/wizard/actions            → apply any document mutation
  POST   /api/wizard/complete           → write answers + company to the database
  WS     /api/wizard/interview/ws       → voice interview recorder

Design:
  - The wizard document lives in the session snapshot, not in tables,
    until /complete.
  - Every step owns its own guard (lykr.wizard.steps). A step save is
    applied to a candidate document first; a failing guard leaves the
    stored document untouched.
  - Documents and voice interview are optional and can be skipped.
"""

import asyncio
import json
import logging
from pathlib import PurePath
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, File, UploadFile, WebSocket, WebSocketDisconnect, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth.deps import get_current_user, get_websocket_user_id
from lykr.config import settings
from lykr.database import get_db
from lykr.i18n import Translator, get_translator
from lykr.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from lykr.models.company import Company
from lykr.models.record import Record
from lykr.models.user import User
from lykr.schemas.wizard import (
    AddDocument,
    BusinessInfo,
    BusinessInfoIn,
    CompetitorsIn,
    CompleteResult,
    DocumentInfo,
    OnboardingState,
    RemoveDocument,
    ResetOnboarding,
    SetBusinessInfo,
    SetCompetitors,
    SetVoiceInterview,
    SetWebsiteInfo,
    StepResult,
    StepView,
    VoiceInterviewIn,
    WebsiteInfo,
    WebsiteInfoIn,
    WizardAction,
    WizardView,
)
from lykr.services.transcription import Transcriber, get_transcriber
from lykr.wizard import steps
from lykr.wizard.persistence import (
    SnapshotStorage,
    WizardSession,
    get_snapshot_storage,
    get_wizard_session,
    open_wizard_session,
)
from lykr.wizard.recorder import RecorderError, VoiceInterviewRecorder, complete_question, run_timer
from lykr.wizard.state import reduce

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx", ".ppt", ".pptx"}
ALLOWED_DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


# ── Helpers ──────────────────────────────────────────────────

def _view(state: OnboardingState) -> WizardView:
    return WizardView(
        state=state,
        completed_steps=steps.completed_steps(state),
        is_complete=all(s.is_complete(state) for s in steps.STEPS if not s.optional),
    )


def _lookup_step(key: str) -> steps.WizardStep:
    try:
        return steps.get_step(key)
    except KeyError:
        raise ResourceNotFoundError("Wizard step", key)


def _step_result(state: OnboardingState, key: str) -> StepResult:
    nxt = steps.next_step(key)
    return StepResult(
        state=state,
        next_route=nxt.route if nxt else None,
        progress=steps.progress(nxt.key if nxt else key),
    )


async def _save_step(
    session: WizardSession,
    key: str,
    action: WizardAction,
    t: Translator,
) -> StepResult:
    """Apply `action` only if the step's guard accepts the resulting document."""
    step = _lookup_step(key)
    candidate = reduce(session.state, action)
    if not step.is_complete(candidate):
        raise BusinessLogicError(
            t("onboarding.stepIncomplete"),
            error_code="STEP_INCOMPLETE",
            details={"step": key},
        )
    state = await session.dispatch(action)
    return _step_result(state, key)


def _domain_of(url: str) -> str:
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.hostname or url).lower()
    return host[4:] if host.startswith("www.") else host


# ── Document ────────────────────────────────────────────────

@router.get("/", response_model=WizardView)
async def get_wizard(session: WizardSession = Depends(get_wizard_session)):
    return _view(session.state)


@router.delete("/", response_model=WizardView)
async def reset_wizard(
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    return _view(await session.dispatch(ResetOnboarding(locale=t.locale)))


@router.post("/actions", response_model=WizardView)
async def apply_action(
    action: WizardAction,
    session: WizardSession = Depends(get_wizard_session),
):
    return _view(await session.dispatch(action))


# ── Steps ───────────────────────────────────────────────────

@router.get("/steps/{key}", response_model=StepView)
async def get_step(
    key: str,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    step = _lookup_step(key)
    prev, nxt = steps.previous_step(key), steps.next_step(key)
    return StepView(
        key=step.key,
        label=t(f"onboarding.steps.{step.key}"),
        route=step.route,
        index=steps.step_index(key),
        total=len(steps.STEPS),
        progress=steps.progress(key),
        optional=step.optional,
        can_continue=step.is_complete(session.state),
        back_route=prev.route if prev else None,
        next_route=nxt.route if nxt else None,
    )


@router.post("/steps/business-info", response_model=StepResult)
async def save_business_info(
    body: BusinessInfoIn,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    action = SetBusinessInfo(payload=BusinessInfo(name=body.name.strip()))
    return await _save_step(session, "business-info", action, t)


@router.post("/steps/website", response_model=StepResult)
async def save_website(
    body: WebsiteInfoIn,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    info = WebsiteInfo(**{k: v.strip() for k, v in body.model_dump().items()})
    return await _save_step(session, "website", SetWebsiteInfo(payload=info), t)


@router.post("/steps/documents", response_model=StepResult)
async def save_documents(
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    # Uploads are saved as they happen; continuing just advances
    return _step_result(session.state, "documents")


@router.post("/steps/competitors", response_model=StepResult)
async def save_competitors(
    body: CompetitorsIn,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    kept = tuple(c.strip() for c in body.competitors if c.strip())
    return await _save_step(session, "competitors", SetCompetitors(payload=kept), t)


@router.post("/steps/voice-interview", response_model=StepResult)
async def save_voice_interview(
    body: VoiceInterviewIn,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    action = SetVoiceInterview(payload=tuple(body.questions))
    return await _save_step(session, "voice-interview", action, t)


@router.post("/steps/{key}/skip", response_model=StepResult)
async def skip_step(
    key: str,
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    step = _lookup_step(key)
    if not step.optional:
        raise BusinessLogicError(
            t("onboarding.stepNotOptional"),
            error_code="STEP_NOT_OPTIONAL",
            details={"step": key},
        )
    return _step_result(session.state, key)


# ── Documents ───────────────────────────────────────────────

@router.post("/documents", response_model=WizardView, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    session: WizardSession = Depends(get_wizard_session),
    t: Translator = Depends(get_translator),
):
    name = file.filename or ""
    extension = PurePath(name).suffix.lower()
    content_type = (file.content_type or "").split(";")[0].strip()
    if extension not in ALLOWED_DOCUMENT_EXTENSIONS and content_type not in ALLOWED_DOCUMENT_TYPES:
        raise BusinessLogicError(t("onboarding.invalidDocument"), error_code="INVALID_DOCUMENT")

    # Read one byte past the limit so oversize files are detected without loading them whole
    content = await file.read(settings.max_document_bytes + 1)
    await file.close()
    if len(content) > settings.max_document_bytes:
        raise BusinessLogicError(t("onboarding.invalidDocument"), error_code="INVALID_DOCUMENT")

    action = AddDocument(payload=DocumentInfo(name=name, size=len(content)))
    return _view(await session.dispatch(action))


@router.delete("/documents/{index}", response_model=WizardView)
async def remove_document(
    index: int,
    session: WizardSession = Depends(get_wizard_session),
):
    return _view(await session.dispatch(RemoveDocument(payload=index)))


# ── Completion ──────────────────────────────────────────────

@router.post("/complete", response_model=CompleteResult)
async def complete_wizard(
    user: User = Depends(get_current_user),
    session: WizardSession = Depends(get_wizard_session),
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    state = session.state
    missing = [s.key for s in steps.STEPS if not s.optional and not s.is_complete(state)]
    if missing:
        raise BusinessLogicError(
            t("onboarding.stepIncomplete"),
            error_code="STEP_INCOMPLETE",
            details={"steps": missing},
        )

    # Answers replace any saved by an earlier completion
    await db.execute(delete(Record).where(Record.user_id == user.id))
    answered = [q for q in state.voice_interview if q.status == "completed" and q.transcript]
    for q in answered:
        db.add(Record(user_id=user.id, question_text=q.text, transcript_text=q.transcript))

    domain = _domain_of(state.website.url)
    result = await db.execute(
        select(Company).where(Company.user_id == user.id, Company.domain == domain).limit(1)
    )
    company = result.scalar_one_or_none()
    if not company:
        company = Company(user_id=user.id, domain=domain, name=state.business_info.name, raw_data={})
        db.add(company)
    company.name = state.business_info.name
    company.linkedin_url = state.website.linkedin or None
    await db.flush()

    logger.info("User %s completed onboarding (%d answers)", user.id, len(answered))
    return CompleteResult(records_created=len(answered), company_id=company.id)


# ── Voice interview socket ──────────────────────────────────
#
# Client → server:
#   {"type": "start", "mimeType": "audio/webm"}   then binary audio frames
#   {"type": "stop"} | {"type": "retry"} | {"type": "toggleEdit"}
#   {"type": "edit", "text": "..."} | {"type": "confirm"}
#   {"type": "restart", "mimeType": "..."}
# Server → client:
#   {"type": "state", ...recorder snapshot}  after every transition and tick
#   {"type": "error", "message": "..."}     for actions invalid in the current state

@router.websocket("/interview/ws")
async def interview_socket(
    websocket: WebSocket,
    storage: SnapshotStorage = Depends(get_snapshot_storage),
    transcriber: Transcriber = Depends(get_transcriber),
):
    user_id = await get_websocket_user_id(websocket)
    session_id = websocket.cookies.get(settings.wizard_session_cookie_name)
    if user_id is None or not session_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = await open_wizard_session(storage, user_id, session_id)
    recorder = VoiceInterviewRecorder(session.state.voice_interview, transcriber)
    timer: asyncio.Task | None = None

    async def send_state() -> None:
        await websocket.send_json({"type": "state", **recorder.snapshot()})

    async def transcribe_and_report() -> None:
        await send_state()
        await recorder.transcribe()
        await send_state()

    async def on_tick(auto_stopped: bool) -> None:
        if auto_stopped:
            await transcribe_and_report()
        else:
            await send_state()

    def start_timer() -> None:
        nonlocal timer
        timer = asyncio.create_task(run_timer(recorder, on_tick))

    def cancel_timer() -> None:
        nonlocal timer
        if timer is not None and not timer.done():
            timer.cancel()
        timer = None

    async def handle(message: dict) -> None:
        if not isinstance(message, dict):
            raise RecorderError("malformed message")
        kind = message.get("type")
        if kind == "start":
            recorder.start(message.get("mimeType"))
            start_timer()
        elif kind == "stop":
            recorder.stop()
            cancel_timer()
            await transcribe_and_report()
            return
        elif kind == "retry":
            if timer is not None and not timer.done():
                raise RecorderError("transcription already in progress")
            await recorder.retry()
        elif kind == "toggleEdit":
            recorder.toggle_edit()
        elif kind == "edit":
            recorder.edit(str(message.get("text", "")))
        elif kind == "confirm":
            question_id, transcript = recorder.confirm()
            # Re-read so edits saved over HTTP meanwhile are kept
            latest = await open_wizard_session(storage, user_id, session_id)
            questions = complete_question(latest.state.voice_interview, question_id, transcript)
            await latest.dispatch(SetVoiceInterview(payload=questions))
            recorder.adopt(questions)
        elif kind == "restart":
            cancel_timer()
            recorder.restart(message.get("mimeType"))
            start_timer()
        else:
            raise RecorderError(f"unknown message type: {kind}")
        await send_state()

    try:
        await send_state()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            try:
                if message.get("bytes") is not None:
                    recorder.feed(message["bytes"])
                else:
                    await handle(json.loads(message.get("text") or "{}"))
            except (RecorderError, json.JSONDecodeError) as e:
                await websocket.send_json({"type": "error", "message": str(e)})
    except WebSocketDisconnect:
        pass
    finally:
        cancel_timer()
        recorder.release()
