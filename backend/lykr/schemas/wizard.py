"""Pydantic schemas for the onboarding wizard document and its actions.

The document is serialised in camelCase (`businessInfo`, `voiceInterview`)
so stored snapshots and API payloads share one shape. Models are frozen:
mutations always build a new document.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

QuestionStatus = Literal["pending", "current", "completed"]


class _Doc(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ── Document parts ──────────────────────────────────────────

class BusinessInfo(_Doc):
    name: str = ""


class WebsiteInfo(_Doc):
    url: str = ""
    linkedin: str = ""
    facebook: str = ""
    twitter: str = ""
    youtube: str = ""


class DocumentInfo(_Doc):
    """Metadata only. File contents are never stored."""
    name: str
    size: int = Field(ge=0)


class VoiceInterviewQuestion(_Doc):
    id: int
    text: str
    status: QuestionStatus = "pending"
    transcript: str | None = None


def check_single_current(questions: list[VoiceInterviewQuestion]) -> list[VoiceInterviewQuestion]:
    if sum(1 for q in questions if q.status == "current") > 1:
        raise ValueError("at most one question can be current")
    return questions


class OnboardingState(_Doc):
    business_info: BusinessInfo = BusinessInfo()
    website: WebsiteInfo = WebsiteInfo()
    documents: tuple[DocumentInfo, ...] = ()
    competitors: tuple[str, ...] = ("",)
    voice_interview: tuple[VoiceInterviewQuestion, ...] = ()

    @field_validator("voice_interview")
    @classmethod
    def _single_current(cls, v):
        check_single_current(list(v))
        return v


# ── Actions ─────────────────────────────────────────────────
# One model per mutation, discriminated by `type`.

class SetBusinessInfo(_Doc):
    type: Literal["setBusinessInfo"] = "setBusinessInfo"
    payload: BusinessInfo


class SetWebsiteInfo(_Doc):
    type: Literal["setWebsiteInfo"] = "setWebsiteInfo"
    payload: WebsiteInfo


class SetDocuments(_Doc):
    type: Literal["setDocuments"] = "setDocuments"
    payload: tuple[DocumentInfo, ...]


class AddDocument(_Doc):
    type: Literal["addDocument"] = "addDocument"
    payload: DocumentInfo


class RemoveDocument(_Doc):
    type: Literal["removeDocument"] = "removeDocument"
    payload: int


class SetCompetitors(_Doc):
    type: Literal["setCompetitors"] = "setCompetitors"
    payload: tuple[str, ...]


class SetVoiceInterview(_Doc):
    type: Literal["setVoiceInterview"] = "setVoiceInterview"
    payload: tuple[VoiceInterviewQuestion, ...]

    @field_validator("payload")
    @classmethod
    def _single_current(cls, v):
        check_single_current(list(v))
        return v


class TranscriptUpdate(_Doc):
    id: int
    transcript: str


class UpdateQuestionTranscript(_Doc):
    type: Literal["updateQuestionTranscript"] = "updateQuestionTranscript"
    payload: TranscriptUpdate


class ResetOnboarding(_Doc):
    type: Literal["resetOnboarding"] = "resetOnboarding"
    # Questions come back in this locale, else in the document's current one
    locale: str | None = None


class HydrateState(_Doc):
    type: Literal["hydrateState"] = "hydrateState"
    payload: OnboardingState


WizardAction = Annotated[
    Union[
        SetBusinessInfo,
        SetWebsiteInfo,
        SetDocuments,
        AddDocument,
        RemoveDocument,
        SetCompetitors,
        SetVoiceInterview,
        UpdateQuestionTranscript,
        ResetOnboarding,
        HydrateState,
    ],
    Field(discriminator="type"),
]


# ── Step payloads ───────────────────────────────────────────

class BusinessInfoIn(BaseModel):
    name: str = ""


class WebsiteInfoIn(BaseModel):
    url: str = ""
    linkedin: str = ""
    facebook: str = ""
    twitter: str = ""
    youtube: str = ""


class CompetitorsIn(BaseModel):
    competitors: list[str] = []


class VoiceInterviewIn(BaseModel):
    questions: list[VoiceInterviewQuestion]

    @model_validator(mode="after")
    def _single_current(self):
        check_single_current(self.questions)
        return self


# ── Responses ───────────────────────────────────────────────

class WizardView(BaseModel):
    state: OnboardingState
    completed_steps: list[str]
    is_complete: bool


class StepView(BaseModel):
    key: str
    label: str
    route: str
    index: int
    total: int
    progress: float
    optional: bool
    can_continue: bool
    back_route: str | None = None
    next_route: str | None = None


class StepResult(BaseModel):
    state: OnboardingState
    next_route: str | None = None
    progress: float


class CompleteResult(BaseModel):
    records_created: int
    company_id: int | None = None
