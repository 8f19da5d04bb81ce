"""
Session, user and profile state for one client.

The controller is the only writer of ``session``, ``user`` and ``profile``.
Backend auth notifications are queued and applied one at a time by a single
worker task, so a notification is never applied halfway through another.
A profile fetch only lands if the user it was issued for is still signed in.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import time

from pydantic import ValidationError

from tutorflow.core import config
from tutorflow.core.errors import AuthError, BackendError, NotAuthenticated, ProfileFetchError
from tutorflow.domain import AuthEvent, AuthResult, Profile, Role, Session, User
from tutorflow.remote.base import RemoteBackend, Subscription

logger = logging.getLogger(__name__)

# Minimum gap between two attempts to reload a profile that failed to load.
PROFILE_RETRY_SECONDS = 1.0


class AuthController:
    def __init__(self, backend: RemoteBackend, default_avatar_url: str | None = None):
        self._backend = backend
        self._default_avatar_url = default_avatar_url or config.DEFAULT_AVATAR_URL
        self.session: Session | None = None
        self.user: User | None = None
        self.profile: Profile | None = None
        self.is_loading = True
        # Bumped whenever the signed-in user changes; lets in-flight reads detect staleness.
        self.generation = 0
        self._profile_failed_at: float | None = None
        self._events: asyncio.Queue[tuple[AuthEvent, Session | None]] = asyncio.Queue()
        self._subscription: Subscription | None = None
        self._worker: asyncio.Task | None = None

    @property
    def role(self) -> Role | None:
        return self.profile.role if self.profile else None

    # --- lifecycle ---------------------------------------------------------------

    async def start(self) -> None:
        self._subscription = self._backend.on_auth_state_change(self._enqueue)
        self._worker = asyncio.create_task(self._drain_events())
        await self.get_initial_session()

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def wait_for_events(self) -> None:
        """Block until every queued auth notification has been applied."""
        await self._events.join()

    def _enqueue(self, event: AuthEvent, session: Session | None) -> None:
        self._events.put_nowait((event, session))

    async def _drain_events(self) -> None:
        while True:
            event, session = await self._events.get()
            try:
                await self.on_session_change(event, session)
            except Exception:
                logger.exception('Failed to apply auth event %s', event.value)
            finally:
                self._events.task_done()

    # --- state -------------------------------------------------------------------

    def _apply_session(self, session: Session | None) -> None:
        previous_user_id = self.user.id if self.user else None
        self.session = session
        self.user = session.user if session else None
        current_user_id = self.user.id if self.user else None
        if current_user_id != previous_user_id:
            self.generation += 1
            self.profile = None

    def _is_current_user(self, user_id: str) -> bool:
        return self.user is not None and self.user.id == user_id

    async def load_profile(self, user_id: str) -> Profile | None:
        try:
            row = await self._backend.select_profile(user_id)
            return Profile.model_validate(row) if row else None
        except (BackendError, ValidationError) as exc:
            raise ProfileFetchError(f'Error fetching user profile: {exc}') from exc

    async def refresh_profile(self, user_id: str) -> Profile | None:
        self.is_loading = True
        try:
            profile = await self.load_profile(user_id)
        except ProfileFetchError as exc:
            logger.error(exc.message)
            if self._is_current_user(user_id):
                self.profile = None
                self._profile_failed_at = time.monotonic()
            return None
        finally:
            self.is_loading = False

        if not self._is_current_user(user_id):
            logger.info('Discarding profile of %s: the session changed while it was loading.', user_id)
            return None
        if profile is None:
            logger.warning('No profile row for user %s.', user_id)
            self._profile_failed_at = time.monotonic()
        else:
            self._profile_failed_at = None
        self.profile = profile
        return profile

    async def ensure_profile(self) -> Profile | None:
        """Reload the profile of a signed-in user whose last profile load failed.

        Attempts are spaced by ``PROFILE_RETRY_SECONDS``; in between, the
        current (missing) profile is returned unchanged.
        """
        if self.user is None or self.profile is not None or self.is_loading:
            return self.profile
        failed_at = self._profile_failed_at
        if failed_at is not None and time.monotonic() - failed_at < PROFILE_RETRY_SECONDS:
            return None
        return await self.refresh_profile(self.user.id)

    async def get_initial_session(self) -> None:
        self.is_loading = True
        try:
            session = await self._backend.get_session()
        except BackendError:
            logger.exception('Could not restore the persisted session.')
            session = None
        self._apply_session(session)
        if self.user:
            await self.refresh_profile(self.user.id)
        self.is_loading = False

    async def on_session_change(self, event: AuthEvent, session: Session | None) -> None:
        logger.debug('Auth event %s', event.value)
        self._apply_session(session)
        if self.user:
            await self.refresh_profile(self.user.id)
        else:
            self.profile = None
        self.is_loading = False

    # --- operations ----------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        self.is_loading = True
        try:
            result = await self._backend.sign_in_with_password(email, password)
        finally:
            self.is_loading = False

        if result.session is not None:
            self._apply_session(result.session)
        if self.user:
            await self.refresh_profile(self.user.id)
        return result

    async def signup(self, email: str, password: str, full_name: str, role: Role | str) -> AuthResult:
        try:
            role = Role(role)
        except ValueError as exc:
            raise AuthError('Please select a role.') from exc

        metadata = {
            'full_name': full_name,
            'role': role.value,
            'avatar_url': self._default_avatar_url,
        }
        self.is_loading = True
        try:
            # The profile row is created by the backend; the SIGNED_IN notification loads it.
            return await self._backend.sign_up(email, password, metadata)
        finally:
            self.is_loading = False

    async def logout(self) -> None:
        self.is_loading = True
        try:
            await self._backend.sign_out()
        except BackendError as exc:
            raise AuthError(exc.message) from exc
        finally:
            self.is_loading = False

        self._apply_session(None)
        self.profile = None

    async def update_profile(
        self,
        full_name: str | None = None,
        avatar_url: str | None = None,
        bio: str | None = None,
        role: Role | str | None = None,
    ) -> Profile | None:
        if self.user is None:
            raise NotAuthenticated('No user logged in.')

        current = self.profile
        if role:
            try:
                role = Role(role).value
            except ValueError as exc:
                raise AuthError(f'Unknown role {role!r}.') from exc
        elif current is not None:
            role = current.role.value

        row = {
            'id': self.user.id,
            'full_name': full_name or (current.full_name if current else None),
            'avatar_url': avatar_url or (current.avatar_url if current else None),
            'bio': bio or (current.bio if current else None),
            'role': role,
            'updated_at': datetime.now(timezone.utc).isoformat(),
        }
        row = {key: value for key, value in row.items() if value is not None}

        self.is_loading = True
        try:
            await self._backend.upsert_profile(row)
        finally:
            self.is_loading = False

        return await self.refresh_profile(self.user.id)
