"""Voice agent for the confirmation step.

  POST /api/voice-agent/session → agent id, seed variables, signed URL
  POST /api/voice-agent/events  → feed call lifecycle/message events,
                                  get back the transcript view
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from lykr.auth.deps import get_current_user
from lykr.config import settings
from lykr.i18n import Translator, get_translator
from lykr.middleware.exceptions import ExternalServiceError, error_response
from lykr.models.user import User
from lykr.services.voice_agent import (
    ConversationMessage,
    ElevenLabsClient,
    VoiceAgentSession,
    build_dynamic_variables,
    get_voice_agent_client,
    is_edit_request,
)
from lykr.wizard.persistence import (
    SnapshotStorage,
    WizardSession,
    ensure_session_id,
    get_snapshot_storage,
    get_wizard_session,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class _CamelOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentSessionOut(_CamelOut):
    agent_id: str
    signed_url: str | None = None
    dynamic_variables: dict[str, str]


class AgentEvent(BaseModel):
    type: Literal["connect", "connected", "message", "disconnect", "error"]
    source: Literal["user", "ai", "agent"] | None = None
    message: str = ""


class ReviewStepOut(_CamelOut):
    key: str
    label: str
    edit_route: str


class AgentView(_CamelOut):
    status: str
    messages: list[ConversationMessage]
    should_scroll: bool
    error: str | None = None
    review_step: ReviewStepOut | None = None
    edit_requested: bool = False


# ── Helpers ──────────────────────────────────────────────────

def _agent_key(user_id: int, session_id: str) -> str:
    return f"{settings.wizard_storage_key}:agent:{user_id}:{session_id}"


async def _load_agent(storage: SnapshotStorage, key: str) -> VoiceAgentSession:
    raw = await storage.get(key)
    if raw:
        try:
            return VoiceAgentSession.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding malformed voice agent state %s", key)
    return VoiceAgentSession()


def _view(agent: VoiceAgentSession, t: Translator, edit_requested: bool = False) -> AgentView:
    step = agent.review_step()
    return AgentView(
        status=agent.status.value,
        messages=agent.messages,
        should_scroll=agent.should_scroll,
        error=agent.error,
        review_step=ReviewStepOut(
            key=step.key,
            label=t(f"voiceAgent.review.{step.key}"),
            edit_route=step.edit_route,
        ) if step else None,
        edit_requested=edit_requested,
    )


# ── Routes ──────────────────────────────────────────────────

@router.post("/session", response_model=AgentSessionOut, response_model_by_alias=True)
async def start_session(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    wizard: WizardSession = Depends(get_wizard_session),
    storage: SnapshotStorage = Depends(get_snapshot_storage),
    client: ElevenLabsClient = Depends(get_voice_agent_client),
    t: Translator = Depends(get_translator),
):
    key = _agent_key(user.id, ensure_session_id(request, response))
    agent = await _load_agent(storage, key)
    agent.connect()

    signed_url = None
    if client.configured:
        try:
            signed_url = await client.get_signed_url(settings.elevenlabs_agent_id)
        except ExternalServiceError as exc:
            logger.warning("Voice agent session failed for user %s: %s", user.id, exc.message)
            agent.fail(t("voiceAgent.startFailed"))
            await storage.set(key, agent.model_dump_json())
            # Keep the session cookie so later events reach the stored error state
            return error_response(exc, carry_from=response)
    await storage.set(key, agent.model_dump_json())

    return AgentSessionOut(
        agent_id=settings.elevenlabs_agent_id,
        signed_url=signed_url,
        dynamic_variables=build_dynamic_variables(wizard.state, t),
    )


@router.post("/events", response_model=AgentView, response_model_by_alias=True)
async def agent_event(
    event: AgentEvent,
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    storage: SnapshotStorage = Depends(get_snapshot_storage),
    t: Translator = Depends(get_translator),
):
    key = _agent_key(user.id, ensure_session_id(request, response))
    agent = await _load_agent(storage, key)
    edit_requested = False

    if event.type == "connect":
        agent.connect()
    elif event.type == "connected":
        agent.connected()
    elif event.type == "message":
        agent.message(event.source or "ai", event.message)
        edit_requested = event.source == "user" and is_edit_request(event.message)
    elif event.type == "disconnect":
        agent.disconnect()
    elif event.type == "error":
        if event.message:
            logger.warning("Voice agent error for user %s: %s", user.id, event.message)
        agent.fail(t("voiceAgent.connectionError"))

    await storage.set(key, agent.model_dump_json())
    return _view(agent, t, edit_requested)
