import asyncio

import pytest

from tutorflow.auth import jwt_handler
from tutorflow.core.errors import AuthError, BackendError, EmailAlreadyRegistered, InvalidCredentials
from tutorflow.domain import AuthEvent
from tutorflow.remote.local_backend import LocalBackend, hash_password, verify_password


def test_hash_password_round_trips_and_salts() -> None:
    first = hash_password('secret123')
    second = hash_password('secret123')

    assert first.startswith('pbkdf2_sha256$')
    assert first != second
    assert verify_password('secret123', first)
    assert not verify_password('secret124', first)


def test_verify_password_rejects_malformed_hash() -> None:
    assert verify_password('secret123', 'not-a-hash') is False


def test_sign_up_creates_profile_from_metadata(session_factory) -> None:
    async def scenario():
        backend = LocalBackend(session_factory)
        result = await backend.sign_up(
            ' Ada@Example.com ',
            'secret123',
            {'full_name': 'Ada', 'role': 'tutor', 'avatar_url': 'https://example.com/ada.png'},
        )
        return result, await backend.select_profile(result.user.id)

    result, row = asyncio.run(scenario())

    assert result.user.email == 'ada@example.com'
    assert result.session.user == result.user
    assert row['full_name'] == 'Ada'
    assert row['role'] == 'tutor'
    assert row['avatar_url'] == 'https://example.com/ada.png'


def test_sign_up_falls_back_to_student_for_unknown_role(session_factory) -> None:
    async def scenario():
        backend = LocalBackend(session_factory)
        result = await backend.sign_up('ada@example.com', 'secret123', {'role': 'wizard'})
        return await backend.select_profile(result.user.id)

    assert asyncio.run(scenario())['role'] == 'student'


@pytest.mark.parametrize(
    ('email', 'password', 'error_message'),
    [
        ('', 'secret123', 'Email is required.'),
        ('ada@example.com', '12345', 'Password should be at least 6 characters.'),
    ],
)
def test_sign_up_validates_credentials(session_factory, email: str, password: str, error_message: str) -> None:
    with pytest.raises(AuthError) as exception_info:
        asyncio.run(LocalBackend(session_factory).sign_up(email, password, {}))

    assert exception_info.value.message == error_message


def test_sign_up_rejects_duplicate_email(session_factory) -> None:
    async def scenario():
        backend = LocalBackend(session_factory)
        await backend.sign_up('ada@example.com', 'secret123', {})
        await backend.sign_up('ADA@example.com', 'secret456', {})

    with pytest.raises(EmailAlreadyRegistered):
        asyncio.run(scenario())


def test_sign_in_rejects_unknown_user(session_factory) -> None:
    with pytest.raises(InvalidCredentials):
        asyncio.run(LocalBackend(session_factory).sign_in_with_password('ghost@example.com', 'secret123'))


def test_auth_events_reach_listeners_until_unsubscribed(session_factory) -> None:
    events = []

    async def scenario():
        backend = LocalBackend(session_factory)
        subscription = backend.on_auth_state_change(lambda event, session: events.append((event, session)))
        await backend.sign_up('ada@example.com', 'secret123', {})
        await backend.sign_out()
        subscription.unsubscribe()
        await backend.sign_in_with_password('ada@example.com', 'secret123')

    asyncio.run(scenario())

    assert [event for event, _ in events] == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]
    assert events[0][1].user.email == 'ada@example.com'
    assert events[1][1] is None


def test_get_session_refreshes_expired_token(session_factory) -> None:
    events = []

    async def scenario():
        backend = LocalBackend(session_factory)
        result = await backend.sign_up('ada@example.com', 'secret123', {})
        expired, _ = jwt_handler.create_access_token(subject=result.user.id, expires_minutes=-5)
        backend._session = result.session.model_copy(update={'access_token': expired})
        backend.on_auth_state_change(lambda event, session: events.append(event))
        return expired, await backend.get_session()

    expired, session = asyncio.run(scenario())

    assert session is not None
    assert session.access_token != expired
    assert jwt_handler.decode_access_token(session.access_token)['sub'] == session.user.id
    assert events == [AuthEvent.TOKEN_REFRESHED]


def test_upsert_profile_refuses_other_users_rows(session_factory) -> None:
    async def scenario():
        other = await LocalBackend(session_factory).sign_up('other@example.com', 'secret123', {})
        backend = LocalBackend(session_factory)
        await backend.sign_up('ada@example.com', 'secret123', {})
        await backend.upsert_profile({'id': other.user.id, 'full_name': 'Hijacked'})

    with pytest.raises(BackendError) as exception_info:
        asyncio.run(scenario())

    assert 'row-level security' in exception_info.value.message


def test_course_writes_require_a_session(session_factory) -> None:
    with pytest.raises(BackendError):
        asyncio.run(LocalBackend(session_factory).insert_course({'title': 'Orphan', 'user_id': 'nobody'}))


def test_insert_course_refuses_foreign_owner(session_factory) -> None:
    async def scenario():
        backend = LocalBackend(session_factory)
        await backend.sign_up('tutor@example.com', 'secret123', {'role': 'tutor'})
        await backend.insert_course({'title': 'Borrowed', 'user_id': 'someone-else'})

    with pytest.raises(BackendError):
        asyncio.run(scenario())


def test_select_profiles_sorts_and_includes_email(session_factory) -> None:
    async def scenario():
        backend = LocalBackend(session_factory)
        await backend.sign_up('zed@example.com', 'secret123', {'full_name': 'Zed', 'role': 'admin'})
        await backend.sign_up('amy@example.com', 'secret123', {'full_name': 'Amy', 'role': 'student'})
        ascending = await backend.select_profiles()
        descending = await backend.select_profiles(order_by='full_name', ascending=False)
        return ascending, descending

    ascending, descending = asyncio.run(scenario())

    assert [row['full_name'] for row in ascending] == ['Amy', 'Zed']
    assert [row['email'] for row in descending] == ['zed@example.com', 'amy@example.com']


def test_select_profiles_rejects_unknown_column(session_factory) -> None:
    with pytest.raises(BackendError):
        asyncio.run(LocalBackend(session_factory).select_profiles(order_by='password'))
