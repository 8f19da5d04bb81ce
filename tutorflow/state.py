"""
Per-browser application state.

Every browser session gets its own ``AppState``: a backend handle (the SDK
keeps the signed-in session on it), the auth and course controllers that
cache what the backend returned, and a referral code. ``SessionRegistry``
creates states on first use and tears them down on logout or shutdown.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from typing import Awaitable, Callable

from tutorflow.analytics import AnalyticsProvider, PlaceholderAnalytics
from tutorflow.auth.session import AuthController
from tutorflow.core import config
from tutorflow.courses.controller import CourseController
from tutorflow.remote.base import RemoteBackend
from tutorflow.remote.local_backend import LocalBackend

logger = logging.getLogger(__name__)

REFERRAL_PREFIX = 'TUTORFLOW-'
REFERRAL_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8

BackendFactory = Callable[[], Awaitable[RemoteBackend]]


async def create_backend() -> RemoteBackend:
    if config.BACKEND == 'supabase':
        from tutorflow.remote.supabase_backend import SupabaseBackend

        return await SupabaseBackend.connect()
    return LocalBackend()


def generate_referral_code() -> str:
    suffix = ''.join(secrets.choice(REFERRAL_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
    return f'{REFERRAL_PREFIX}{suffix}'


class AppState:
    def __init__(self, backend: RemoteBackend, analytics: AnalyticsProvider | None = None):
        self.backend = backend
        self.analytics = analytics or PlaceholderAnalytics()
        self.auth = AuthController(backend)
        self.courses = CourseController(backend, self.auth)
        self._referral_code: str | None = None

    @property
    def referral_code(self) -> str:
        if self._referral_code is None:
            self._referral_code = generate_referral_code()
        return self._referral_code

    async def start(self) -> None:
        await self.auth.start()

    async def close(self) -> None:
        await self.auth.stop()
        self.courses.reset()
        await self.backend.close()


class SessionRegistry:
    """States keyed by session id; a state unused for ``idle_seconds`` is closed and dropped."""

    def __init__(
        self,
        backend_factory: BackendFactory = create_backend,
        analytics_factory: Callable[[], AnalyticsProvider] = PlaceholderAnalytics,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend_factory = backend_factory
        self._analytics_factory = analytics_factory
        self._idle_seconds = config.SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self._clock = clock
        self._states: dict[str, AppState] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._states)

    def _find(self, session_id: str | None) -> AppState | None:
        if not session_id:
            return None
        state = self._states.get(session_id)
        if state is not None:
            self._last_seen[session_id] = self._clock()
        return state

    async def _evict_idle(self) -> None:
        cutoff = self._clock() - self._idle_seconds
        stale = [session_id for session_id, seen in self._last_seen.items() if seen < cutoff]
        for session_id in stale:
            await self.discard(session_id)
        if stale:
            logger.info('Evicted %d idle client sessions.', len(stale))

    async def lookup(self, session_id: str | None) -> AppState | None:
        async with self._lock:
            await self._evict_idle()
            return self._find(session_id)

    async def get_or_create(self, session_id: str | None) -> tuple[str, AppState]:
        async with self._lock:
            await self._evict_idle()
            existing = self._find(session_id)
            if existing is not None:
                return session_id, existing

            new_id = secrets.token_urlsafe(32)
            state = AppState(await self._backend_factory(), self._analytics_factory())
            await state.start()
            self._states[new_id] = state
            self._last_seen[new_id] = self._clock()
            logger.debug('Created application state for a new client session.')
            return new_id, state

    async def discard(self, session_id: str) -> None:
        self._last_seen.pop(session_id, None)
        state = self._states.pop(session_id, None)
        if state is not None:
            await state.close()

    async def close_all(self) -> None:
        session_ids = list(self._states)
        for session_id in session_ids:
            await self.discard(session_id)
        logger.info('Closed %d client sessions.', len(session_ids))
