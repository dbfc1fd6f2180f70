from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from uuid import UUID

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from portal.core.settings import settings
from portal.schemas.admission import WizardSession
from portal.services.errors import RecordReadError, RecordWriteError

logger = logging.getLogger(__name__)

# Upper bound on how long a crashed submission can keep the lock
SUBMISSION_LOCK_SECONDS = 120


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    return Redis.from_url(settings.redis_url, decode_responses=True)


class WizardSessionStore(ABC):
    """Holds one in-progress form per applicant between requests."""

    @abstractmethod
    async def load(self, uid: UUID) -> WizardSession | None:
        pass

    @abstractmethod
    async def save(self, session: WizardSession) -> None:
        pass

    @abstractmethod
    async def discard(self, uid: UUID) -> None:
        pass

    @abstractmethod
    async def claim_submission(self, uid: UUID) -> bool:
        """Mark a submission as in flight; False when one already is."""

    @abstractmethod
    async def release_submission(self, uid: UUID) -> None:
        pass

    @abstractmethod
    async def submission_in_flight(self, uid: UUID) -> bool:
        pass


class RedisWizardSessionStore(WizardSessionStore):
    def __init__(self, redis: Redis, ttl_seconds: int) -> None:
        self.redis = redis
        self.ttl_seconds = max(1, ttl_seconds)

    @staticmethod
    def _session_key(uid: UUID) -> str:
        return f"wizard:session:{uid}"

    @staticmethod
    def _lock_key(uid: UUID) -> str:
        return f"wizard:submitting:{uid}"

    async def load(self, uid: UUID) -> WizardSession | None:
        try:
            raw = await self.redis.get(self._session_key(uid))
        except RedisError as exc:
            logger.warning("Wizard session load failed for %s: %s", uid, exc)
            raise RecordReadError("Could not load your form, please try again") from exc
        if not raw:
            return None
        try:
            return WizardSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable wizard session for %s", uid)
            return None

    async def save(self, session: WizardSession) -> None:
        try:
            await self.redis.setex(
                self._session_key(session.uid), self.ttl_seconds, session.model_dump_json()
            )
        except RedisError as exc:
            logger.warning("Wizard session save failed for %s: %s", session.uid, exc)
            raise RecordWriteError("Could not save your form, please try again") from exc

    async def discard(self, uid: UUID) -> None:
        try:
            await self.redis.delete(self._session_key(uid))
        except RedisError as exc:
            logger.warning("Wizard session delete failed for %s: %s", uid, exc)

    async def claim_submission(self, uid: UUID) -> bool:
        try:
            claimed = await self.redis.set(self._lock_key(uid), 1, nx=True, ex=SUBMISSION_LOCK_SECONDS)
        except RedisError as exc:
            logger.warning("Submission lock failed for %s: %s", uid, exc)
            raise RecordWriteError("Could not start the submission, please try again") from exc
        return bool(claimed)

    async def release_submission(self, uid: UUID) -> None:
        try:
            await self.redis.delete(self._lock_key(uid))
        except RedisError as exc:
            logger.warning("Submission unlock failed for %s: %s", uid, exc)

    async def submission_in_flight(self, uid: UUID) -> bool:
        try:
            return bool(await self.redis.exists(self._lock_key(uid)))
        except RedisError:
            return False


class InMemoryWizardSessionStore(WizardSessionStore):
    """Process-local store for tests and single-worker development."""

    def __init__(self, ttl_seconds: int = 0) -> None:
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[str, tuple[float, str]] = {}
        self._locks: dict[str, float] = {}

    def _expired(self, stored_at: float, ttl: int) -> bool:
        return bool(ttl) and time.monotonic() - stored_at > ttl

    async def load(self, uid: UUID) -> WizardSession | None:
        entry = self._sessions.get(str(uid))
        if entry is None:
            return None
        stored_at, raw = entry
        if self._expired(stored_at, self.ttl_seconds):
            self._sessions.pop(str(uid), None)
            return None
        return WizardSession.model_validate_json(raw)

    async def save(self, session: WizardSession) -> None:
        self._sessions[str(session.uid)] = (time.monotonic(), session.model_dump_json())

    async def discard(self, uid: UUID) -> None:
        self._sessions.pop(str(uid), None)

    async def claim_submission(self, uid: UUID) -> bool:
        if await self.submission_in_flight(uid):
            return False
        self._locks[str(uid)] = time.monotonic()
        return True

    async def release_submission(self, uid: UUID) -> None:
        self._locks.pop(str(uid), None)

    async def submission_in_flight(self, uid: UUID) -> bool:
        started = self._locks.get(str(uid))
        return started is not None and not self._expired(started, SUBMISSION_LOCK_SECONDS)


@lru_cache(maxsize=1)
def _memory_store() -> InMemoryWizardSessionStore:
    return InMemoryWizardSessionStore(settings.wizard_session_ttl_seconds)


def get_wizard_session_store() -> WizardSessionStore:
    if settings.wizard_session_backend == "memory":
        return _memory_store()
    return RedisWizardSessionStore(get_redis_client(), settings.wizard_session_ttl_seconds)
