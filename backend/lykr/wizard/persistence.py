"""Session-scoped persistence of the wizard document.

Each (user, browser session) pair owns one snapshot slot. Every dispatch
overwrites the slot with the serialised document. When a session is
opened the slot is read exactly once; an absent, unreadable or malformed
snapshot silently leaves the default document in place.

The browser session is a cookie without max-age, so closing the browser
starts the next visit from a clean document.
"""

import json
import logging
import secrets

import redis.asyncio as redis
from fastapi import Depends, Request, Response
from pydantic import ValidationError

from lykr.auth.deps import get_current_user
from lykr.config import settings
from lykr.models.user import User
from lykr.schemas.wizard import HydrateState, OnboardingState, WizardAction
from lykr.utils.cache import get_redis
from lykr.wizard.state import WizardStore

logger = logging.getLogger(__name__)


# ── Storage backends ────────────────────────────────────────

class SnapshotStorage:
    """Key/value slot holding serialised snapshots."""

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError


class RedisSnapshotStorage(SnapshotStorage):
    def __init__(self, client: redis.Redis, ttl: int = settings.wizard_session_ttl_seconds):
        self._client = client
        self._ttl = ttl

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        # Sliding expiry: every write extends the session's lifetime
        await self._client.setex(key, self._ttl, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)


class MemorySnapshotStorage(SnapshotStorage):
    """In-process storage for development and tests."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


_memory_storage = MemorySnapshotStorage()


async def get_snapshot_storage() -> SnapshotStorage:
    if settings.wizard_storage_backend == "memory":
        return _memory_storage
    return RedisSnapshotStorage(await get_redis())


# ── Serialisation ───────────────────────────────────────────

def serialize(state: OnboardingState) -> str:
    return json.dumps(
        state.model_dump(mode="json", by_alias=True, exclude_none=True),
        ensure_ascii=False,
    )


def deserialize(raw: str) -> OnboardingState:
    """Raises ValueError (incl. ValidationError) on malformed input."""
    return OnboardingState.model_validate_json(raw)


class WizardPersistence:
    def __init__(self, storage: SnapshotStorage, key: str):
        self.storage = storage
        self.key = key

    async def save(self, state: OnboardingState) -> None:
        try:
            await self.storage.set(self.key, serialize(state))
        except redis.RedisError as e:
            logger.warning(f"Failed to save wizard snapshot {self.key}: {e}")

    async def load(self) -> OnboardingState | None:
        try:
            raw = await self.storage.get(self.key)
        except redis.RedisError as e:
            logger.warning(f"Failed to read wizard snapshot {self.key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return deserialize(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding malformed wizard snapshot %s", self.key)
            return None

    async def clear(self) -> None:
        try:
            await self.storage.delete(self.key)
        except redis.RedisError as e:
            logger.warning(f"Failed to clear wizard snapshot {self.key}: {e}")


# ── Session ─────────────────────────────────────────────────

def snapshot_key(user_id: int, session_id: str) -> str:
    return f"{settings.wizard_storage_key}:{user_id}:{session_id}"


class WizardSession:
    """A store bound to one snapshot slot.

    `open()` hydrates from the slot once and then subscribes the slot to
    every later transition. Reads before `open()` are an error.
    """

    def __init__(self, persistence: WizardPersistence, store: WizardStore | None = None):
        self.persistence = persistence
        self.store = store or WizardStore()
        self._hydrated = False

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    async def open(self) -> "WizardSession":
        if self._hydrated:
            return self
        snapshot = await self.persistence.load()
        if snapshot is not None:
            # Applied before subscribing: hydration is not itself a write
            await self.store.dispatch(HydrateState(payload=snapshot))
        self.store.subscribe(self.persistence.save)
        self._hydrated = True
        return self

    @property
    def state(self) -> OnboardingState:
        if not self._hydrated:
            raise RuntimeError("Wizard session read before hydration")
        return self.store.state

    async def dispatch(self, action: WizardAction) -> OnboardingState:
        if not self._hydrated:
            raise RuntimeError("Wizard session written before hydration")
        return await self.store.dispatch(action)


async def open_wizard_session(
    storage: SnapshotStorage, user_id: int, session_id: str
) -> WizardSession:
    persistence = WizardPersistence(storage, snapshot_key(user_id, session_id))
    return await WizardSession(persistence).open()


def ensure_session_id(request: Request, response: Response) -> str:
    """Browser-session id from the cookie, issuing one if absent."""
    # Several dependencies may ask within one request; issue at most one id
    issued = getattr(request.state, "wizard_session_id", None)
    if issued:
        return issued
    session_id = request.cookies.get(settings.wizard_session_cookie_name)
    if not session_id:
        session_id = secrets.token_urlsafe(24)
        request.state.wizard_session_id = session_id
        response.set_cookie(
            settings.wizard_session_cookie_name,
            session_id,
            httponly=True,
            samesite="lax",
            secure=settings.environment == "production",
            path="/",
        )
    return session_id


async def get_wizard_session(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    storage: SnapshotStorage = Depends(get_snapshot_storage),
) -> WizardSession:
    """FastAPI dependency: the hydrated wizard session for this browser session."""
    return await open_wizard_session(storage, user.id, ensure_session_id(request, response))
