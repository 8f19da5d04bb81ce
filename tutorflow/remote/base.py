"""
Boundary to the hosted backend-as-a-service.

Controllers only talk to a ``RemoteBackend``. Adapters translate SDK
responses into the domain types and SDK exceptions into the error types of
``tutorflow.core.errors``:

- auth failures raise ``AuthError`` subclasses
- everything else raises ``BackendError``

Table reads return ``None`` (single row) or ``[]`` when nothing matches;
writes that match no row return ``None`` / ``False`` instead of raising,
which is how row-level security reports a row the caller may not touch.
"""
from __future__ import annotations

from typing import Any, Callable, Protocol

from tutorflow.domain import AuthEvent, AuthResult, Session


AuthListener = Callable[[AuthEvent, Session | None], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class RemoteBackend(Protocol):
    """Auth subsystem plus row access to the ``profiles`` and ``courses`` tables."""

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthResult: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> Session | None: ...

    def on_auth_state_change(self, listener: AuthListener) -> Subscription: ...

    async def select_profile(self, user_id: str) -> dict[str, Any] | None: ...

    async def select_profiles(self, order_by: str = "full_name", ascending: bool = True) -> list[dict[str, Any]]: ...

    async def upsert_profile(self, row: dict[str, Any]) -> None: ...

    async def select_courses(self, user_id: str | None = None) -> list[dict[str, Any]]: ...

    async def select_course(self, course_id: str) -> dict[str, Any] | None: ...

    async def insert_course(self, row: dict[str, Any]) -> dict[str, Any]: ...

    async def update_course(self, course_id: str, changes: dict[str, Any]) -> dict[str, Any] | None: ...

    async def delete_course(self, course_id: str) -> bool: ...

    async def close(self) -> None: ...


class ListenerSubscription:
    """Unsubscribe handle for listeners kept in a plain list."""

    def __init__(self, listeners: list[AuthListener], listener: AuthListener):
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)
