"""Confirmation-step voice agent.

The agent reads the collected onboarding data back to the user. This
module builds the variables the agent is seeded with, fetches signed
conversation URLs, tracks the call lifecycle and maps what the agent is
currently reviewing to the step the user can jump back to.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Literal

import httpx
from pydantic import BaseModel

from lykr.config import settings
from lykr.i18n import Translator
from lykr.middleware.exceptions import ExternalServiceError
from lykr.schemas.wizard import OnboardingState

logger = logging.getLogger(__name__)

ELEVENLABS_SIGNED_URL = "https://api.elevenlabs.io/v1/convai/conversation/get-signed-url"
MAX_VISIBLE_MESSAGES = 4
_HTTP_TIMEOUT = 10.0

_SOCIAL_FIELDS = ("linkedin", "facebook", "twitter", "youtube")


# ── Dynamic variables ───────────────────────────────────────

def build_dynamic_variables(state: OnboardingState, t: Translator) -> dict[str, str]:
    sep = t("voiceAgent.listSeparator")

    social = [
        f"{t(f'voiceAgent.{field}')}: {getattr(state.website, field)}"
        for field in _SOCIAL_FIELDS
        if getattr(state.website, field)
    ]
    competitors = sep.join(c for c in state.competitors if c.strip())
    answered = [q for q in state.voice_interview if q.status == "completed" and q.transcript]
    interview = " | ".join(
        f'{i}. {q.text}: "{q.transcript}"' for i, q in enumerate(answered, start=1)
    )

    return {
        "business_name": state.business_info.name or t("voiceAgent.notSpecified"),
        "website_url": state.website.url or t("voiceAgent.notSpecified"),
        "social_links": sep.join(social) or t("voiceAgent.socialNotSpecified"),
        "competitors": competitors or t("voiceAgent.competitorsNotSpecified"),
        "interview_answers": interview or t("voiceAgent.interviewIncomplete"),
    }


# ── Review step detection ───────────────────────────────────

@dataclass(frozen=True)
class ReviewStep:
    key: str
    keywords: tuple[str, ...]
    edit_route: str


REVIEW_STEPS: tuple[ReviewStep, ...] = (
    ReviewStep("business_name", ("اسم", "نشاط", "تجاري", "business name"), "/onboarding/business-info"),
    ReviewStep("website", ("موقع", "إلكتروني", "الموقع", "website"), "/onboarding/website"),
    ReviewStep(
        "social",
        ("تواصل", "اجتماعي", "لينكد", "فيسبوك", "تويتر", "social", "linkedin", "facebook", "twitter"),
        "/onboarding/website",
    ),
    ReviewStep("competitors", ("منافس", "منافسين", "منافسون", "competitor"), "/onboarding/competitors"),
    ReviewStep("interview", ("مقابلة", "صوتية", "إجابات", "interview", "answers"), "/onboarding/voice-interview"),
)

# Quick reply text that asks to go back and change something
EDIT_REQUEST_KEYWORDS = ("تعديل", "edit", "change")


def detect_review_step(message: str) -> ReviewStep | None:
    """First step (in review order) with a keyword in the agent's message."""
    text = message.lower()
    for step in REVIEW_STEPS:
        if any(keyword in text for keyword in step.keywords):
            return step
    return None


def is_edit_request(reply: str) -> bool:
    text = reply.lower()
    return any(keyword in text for keyword in EDIT_REQUEST_KEYWORDS)


# ── Call lifecycle ──────────────────────────────────────────

class AgentStatus(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConversationMessage(BaseModel):
    id: int
    role: Literal["assistant", "user"]
    content: str


class VoiceAgentSession(BaseModel):
    """Call state for one confirmation page. Serialisable so it survives between requests."""

    status: AgentStatus = AgentStatus.DISCONNECTED
    messages: list[ConversationMessage] = []
    last_agent_message: str = ""
    error: str | None = None
    next_message_id: int = 1

    def connect(self) -> None:
        self.status = AgentStatus.CONNECTING
        self.error = None

    def connected(self) -> None:
        self.status = AgentStatus.CONNECTED
        self.error = None

    def message(self, source: str, text: str) -> None:
        if not text:
            return
        role = "user" if source == "user" else "assistant"
        self.messages.append(ConversationMessage(id=self.next_message_id, role=role, content=text))
        self.next_message_id += 1
        if role == "assistant":
            self.last_agent_message = text

    def disconnect(self) -> None:
        self.status = AgentStatus.DISCONNECTED
        self.messages = []
        self.last_agent_message = ""
        self.next_message_id = 1

    def fail(self, message: str) -> None:
        self.status = AgentStatus.ERROR
        self.error = message

    @property
    def should_scroll(self) -> bool:
        return len(self.messages) > MAX_VISIBLE_MESSAGES

    def review_step(self) -> ReviewStep | None:
        return detect_review_step(self.last_agent_message) if self.last_agent_message else None


# ── ElevenLabs ──────────────────────────────────────────────

class ElevenLabsClient:
    def __init__(self, api_key: str = settings.elevenlabs_api_key):
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_signed_url(self, agent_id: str) -> str:
        """Raises ExternalServiceError if ElevenLabs refuses or is unreachable."""
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    ELEVENLABS_SIGNED_URL,
                    params={"agent_id": agent_id},
                    headers={"xi-api-key": self.api_key},
                    timeout=_HTTP_TIMEOUT,
                )
                resp.raise_for_status()
                return resp.json()["signed_url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Failed to get signed conversation URL: %s", e)
            raise ExternalServiceError("Voice agent unavailable") from e


_client: ElevenLabsClient | None = None


def get_voice_agent_client() -> ElevenLabsClient:
    global _client
    if _client is None:
        _client = ElevenLabsClient()
    return _client
