"""Wizard document mutations and the store that applies them.

Every mutation is a pure function (state, action) -> state. Invalid
payloads (an out-of-range document index, an unknown question id) leave
the document unchanged instead of raising.
"""

import logging
from collections.abc import Awaitable, Callable

from lykr.config import settings
from lykr.i18n import get_translator_for, supported_locales
from lykr.schemas.wizard import (
    AddDocument,
    HydrateState,
    OnboardingState,
    RemoveDocument,
    ResetOnboarding,
    SetBusinessInfo,
    SetCompetitors,
    SetDocuments,
    SetVoiceInterview,
    SetWebsiteInfo,
    UpdateQuestionTranscript,
    VoiceInterviewQuestion,
    WizardAction,
)

logger = logging.getLogger(__name__)

Listener = Callable[[OnboardingState], Awaitable[None]]


def initial_questions(locale: str | None = None) -> tuple[VoiceInterviewQuestion, ...]:
    """The four interview questions, first one current."""
    texts = get_translator_for(locale or settings.default_locale).lookup("onboarding.questions")
    return tuple(
        VoiceInterviewQuestion(id=i, text=text, status="current" if i == 1 else "pending")
        for i, text in enumerate(texts, start=1)
    )


def initial_state(locale: str | None = None) -> OnboardingState:
    return OnboardingState(voice_interview=initial_questions(locale))


# ── Reducers ────────────────────────────────────────────────

def _set_business_info(state: OnboardingState, action: SetBusinessInfo) -> OnboardingState:
    return state.model_copy(update={"business_info": action.payload})


def _set_website_info(state: OnboardingState, action: SetWebsiteInfo) -> OnboardingState:
    return state.model_copy(update={"website": action.payload})


def _set_documents(state: OnboardingState, action: SetDocuments) -> OnboardingState:
    return state.model_copy(update={"documents": tuple(action.payload)})


def _add_document(state: OnboardingState, action: AddDocument) -> OnboardingState:
    return state.model_copy(update={"documents": state.documents + (action.payload,)})


def _remove_document(state: OnboardingState, action: RemoveDocument) -> OnboardingState:
    index = action.payload
    if not 0 <= index < len(state.documents):
        return state
    docs = state.documents[:index] + state.documents[index + 1:]
    return state.model_copy(update={"documents": docs})


def _set_competitors(state: OnboardingState, action: SetCompetitors) -> OnboardingState:
    return state.model_copy(update={"competitors": tuple(action.payload)})


def _set_voice_interview(state: OnboardingState, action: SetVoiceInterview) -> OnboardingState:
    return state.model_copy(update={"voice_interview": tuple(action.payload)})


def _update_question_transcript(
    state: OnboardingState, action: UpdateQuestionTranscript
) -> OnboardingState:
    target = action.payload
    if not any(q.id == target.id for q in state.voice_interview):
        return state
    questions = tuple(
        q.model_copy(update={"transcript": target.transcript, "status": "completed"})
        if q.id == target.id else q
        for q in state.voice_interview
    )
    return state.model_copy(update={"voice_interview": questions})


def _questions_locale(state: OnboardingState) -> str | None:
    """The locale whose default questions the document carries, if any."""
    texts = tuple(q.text for q in state.voice_interview)
    for locale in supported_locales():
        if texts == tuple(get_translator_for(locale).lookup("onboarding.questions")):
            return locale
    return None


def _reset_onboarding(state: OnboardingState, action: ResetOnboarding) -> OnboardingState:
    return initial_state(action.locale or _questions_locale(state))


def _hydrate_state(state: OnboardingState, action: HydrateState) -> OnboardingState:
    return action.payload


_REDUCERS: dict[type, Callable[[OnboardingState, WizardAction], OnboardingState]] = {
    SetBusinessInfo: _set_business_info,
    SetWebsiteInfo: _set_website_info,
    SetDocuments: _set_documents,
    AddDocument: _add_document,
    RemoveDocument: _remove_document,
    SetCompetitors: _set_competitors,
    SetVoiceInterview: _set_voice_interview,
    UpdateQuestionTranscript: _update_question_transcript,
    ResetOnboarding: _reset_onboarding,
    HydrateState: _hydrate_state,
}


def reduce(state: OnboardingState, action: WizardAction) -> OnboardingState:
    return _REDUCERS[type(action)](state, action)


# ── Store ───────────────────────────────────────────────────

class WizardStore:
    """Holds the current document and notifies listeners after each dispatch."""

    def __init__(self, state: OnboardingState | None = None):
        self._state = state if state is not None else initial_state()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> OnboardingState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def dispatch(self, action: WizardAction) -> OnboardingState:
        self._state = reduce(self._state, action)
        for listener in list(self._listeners):
            await listener(self._state)
        return self._state
