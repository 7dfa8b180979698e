"""Onboarding step order, progress and per-step forward guards.

Each step owns its completion check. There is no cross-step validator:
a step only looks at the part of the document it edits.
"""

from collections.abc import Callable
from dataclasses import dataclass

from lykr.schemas.wizard import OnboardingState


@dataclass(frozen=True)
class WizardStep:
    key: str
    route: str
    optional: bool
    is_complete: Callable[[OnboardingState], bool]


def _always(state: OnboardingState) -> bool:
    return True


def business_info_complete(state: OnboardingState) -> bool:
    return bool(state.business_info.name.strip())


def website_complete(state: OnboardingState) -> bool:
    return bool(state.website.url.strip()) and bool(state.website.linkedin.strip())


def competitors_complete(state: OnboardingState) -> bool:
    return any(c.strip() for c in state.competitors)


def voice_interview_complete(state: OnboardingState) -> bool:
    questions = state.voice_interview
    return bool(questions) and all(q.status == "completed" for q in questions)


STEPS: tuple[WizardStep, ...] = (
    WizardStep("business-info", "/onboarding/business-info", False, business_info_complete),
    WizardStep("website", "/onboarding/website", False, website_complete),
    WizardStep("documents", "/onboarding/documents", True, _always),
    WizardStep("competitors", "/onboarding/competitors", False, competitors_complete),
    WizardStep("voice-interview", "/onboarding/voice-interview", True, voice_interview_complete),
    WizardStep("confirmation", "/onboarding/confirmation", False, _always),
)

STEP_KEYS = tuple(s.key for s in STEPS)
_BY_KEY = {s.key: s for s in STEPS}


def get_step(key: str) -> WizardStep:
    """Raises KeyError for unknown step keys."""
    return _BY_KEY[key]


def step_index(key: str) -> int:
    return STEP_KEYS.index(key)


def progress(key: str) -> float:
    return (step_index(key) + 1) / len(STEPS)


def next_step(key: str) -> WizardStep | None:
    i = step_index(key)
    return STEPS[i + 1] if i + 1 < len(STEPS) else None


def previous_step(key: str) -> WizardStep | None:
    i = step_index(key)
    return STEPS[i - 1] if i > 0 else None


def completed_steps(state: OnboardingState) -> list[str]:
    return [s.key for s in STEPS if s.is_complete(state)]
