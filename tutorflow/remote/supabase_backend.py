"""
Supabase-backed implementation of ``RemoteBackend``.

Each instance owns its own async client, because the SDK keeps the signed-in
session on the client object. Create one per browser session with
``SupabaseBackend.connect()``.

Row-level security on the hosted project decides what the signed-in user may
read and write; an update or delete that the policies filter out comes back
as an empty result, which is reported as ``None`` / ``False``.
"""
from __future__ import annotations

import logging
from typing import Any

from supabase import AsyncClient, AuthApiError, AuthError as SupabaseAuthError, acreate_client

from tutorflow.core import config
from tutorflow.core.errors import AuthError, BackendError, EmailAlreadyRegistered, InvalidCredentials
from tutorflow.domain import AuthEvent, AuthResult, Session, User
from tutorflow.remote.base import AuthListener, Subscription

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = 'id, full_name, avatar_url, role, bio, updated_at'
COURSE_COLUMNS = '*, profiles ( full_name, avatar_url )'
INVALID_CREDENTIAL_CODES = {'invalid_credentials', 'invalid_grant'}
DUPLICATE_EMAIL_CODES = {'user_already_exists', 'email_exists'}


def _to_user(sdk_user: Any) -> User | None:
    if sdk_user is None:
        return None
    return User(id=str(sdk_user.id), email=getattr(sdk_user, 'email', None))


def _to_session(sdk_session: Any) -> Session | None:
    if sdk_session is None or getattr(sdk_session, 'user', None) is None:
        return None
    return Session(
        access_token=sdk_session.access_token,
        refresh_token=getattr(sdk_session, 'refresh_token', None),
        expires_at=getattr(sdk_session, 'expires_at', None),
        user=_to_user(sdk_session.user),
    )


def _to_event(sdk_event: Any) -> AuthEvent | None:
    value = getattr(sdk_event, 'value', sdk_event)
    try:
        return AuthEvent(value)
    except ValueError:
        logger.warning('Ignoring unknown auth event %r', value)
        return None


def _translate_auth_error(exc: SupabaseAuthError) -> AuthError:
    code = getattr(exc, 'code', None)
    message = getattr(exc, 'message', None) or str(exc)
    if code in INVALID_CREDENTIAL_CODES or message == 'Invalid login credentials':
        return InvalidCredentials(message)
    if code in DUPLICATE_EMAIL_CODES or 'already registered' in message:
        return EmailAlreadyRegistered(message)
    return AuthError(message)


def _rows(response: Any) -> list[dict[str, Any]]:
    if response is None:
        return []
    data = getattr(response, 'data', None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


class SupabaseBackend:
    def __init__(self, client: AsyncClient):
        self._client = client

    @classmethod
    async def connect(cls, url: str | None = None, key: str | None = None) -> 'SupabaseBackend':
        client = await acreate_client(url or config.SUPABASE_URL, key or config.SUPABASE_ANON_KEY)
        return cls(client)

    # --- auth ------------------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        def relay(sdk_event: Any, sdk_session: Any) -> None:
            event = _to_event(sdk_event)
            if event is not None:
                listener(event, _to_session(sdk_session))

        return self._client.auth.on_auth_state_change(relay)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthResult:
        try:
            response = await self._client.auth.sign_up(
                {'email': email, 'password': password, 'options': {'data': metadata}}
            )
        except SupabaseAuthError as exc:
            raise _translate_auth_error(exc) from exc
        except Exception as exc:
            raise BackendError(f'Sign up failed: {exc}') from exc
        return AuthResult(user=_to_user(response.user), session=_to_session(response.session))

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        try:
            response = await self._client.auth.sign_in_with_password({'email': email, 'password': password})
        except SupabaseAuthError as exc:
            raise _translate_auth_error(exc) from exc
        except Exception as exc:
            raise BackendError(f'Sign in failed: {exc}') from exc
        return AuthResult(user=_to_user(response.user), session=_to_session(response.session))

    async def sign_out(self) -> None:
        try:
            await self._client.auth.sign_out()
        except SupabaseAuthError as exc:
            raise _translate_auth_error(exc) from exc
        except Exception as exc:
            raise BackendError(f'Sign out failed: {exc}') from exc

    async def get_session(self) -> Session | None:
        try:
            return _to_session(await self._client.auth.get_session())
        except AuthApiError as exc:
            logger.warning('Stored session rejected: %s', exc)
            return None
        except Exception as exc:
            raise BackendError(f'Could not read session: {exc}') from exc

    # --- profiles ----------------------------------------------------------------

    async def select_profile(self, user_id: str) -> dict[str, Any] | None:
        try:
            response = await (
                self._client.table('profiles')
                .select(PROFILE_COLUMNS)
                .eq('id', user_id)
                .maybe_single()
                .execute()
            )
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        rows = _rows(response)
        return rows[0] if rows else None

    async def select_profiles(self, order_by: str = 'full_name', ascending: bool = True) -> list[dict[str, Any]]:
        try:
            response = await (
                self._client.table('profiles')
                .select(PROFILE_COLUMNS)
                .order(order_by, desc=not ascending)
                .execute()
            )
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        return _rows(response)

    async def upsert_profile(self, row: dict[str, Any]) -> None:
        try:
            await self._client.table('profiles').upsert(row).execute()
        except Exception as exc:
            raise BackendError(str(exc)) from exc

    # --- courses -----------------------------------------------------------------

    async def select_courses(self, user_id: str | None = None) -> list[dict[str, Any]]:
        try:
            query = self._client.table('courses').select(COURSE_COLUMNS)
            if user_id:
                query = query.eq('user_id', user_id)
            response = await query.order('created_at', desc=True).execute()
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        return _rows(response)

    async def select_course(self, course_id: str) -> dict[str, Any] | None:
        try:
            response = await (
                self._client.table('courses')
                .select(COURSE_COLUMNS)
                .eq('id', course_id)
                .maybe_single()
                .execute()
            )
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        rows = _rows(response)
        return rows[0] if rows else None

    async def insert_course(self, row: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.table('courses').insert(row).execute()
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        rows = _rows(response)
        if not rows:
            raise BackendError('Insert returned no row.')
        return rows[0]

    async def update_course(self, course_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = await self._client.table('courses').update(changes).eq('id', course_id).execute()
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        rows = _rows(response)
        return rows[0] if rows else None

    async def delete_course(self, course_id: str) -> bool:
        try:
            response = await self._client.table('courses').delete().eq('id', course_id).execute()
        except Exception as exc:
            raise BackendError(str(exc)) from exc
        return bool(_rows(response))

    async def close(self) -> None:
        """Nothing to release: the SDK client keeps no open connections between calls."""
