import asyncio
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from tutorflow.auth import session as auth_session
from tutorflow.auth.dependencies import enforce_guard, require_view
from tutorflow.core.errors import BackendError
from tutorflow.domain import CourseChanges, CourseDraft, Profile, Role, User
from tutorflow.routes import course_routes


def _fake_state(*, is_loading=False, user=None, role=None):
    profile = Profile(id=user.id, role=role) if user and role else None

    async def ensure_profile():
        return profile

    auth = SimpleNamespace(is_loading=is_loading, user=user, profile=profile, role=role, ensure_profile=ensure_profile)
    return SimpleNamespace(auth=auth)


USER = User(id='user-1', email='someone@example.com')


def test_enforce_guard_asks_client_to_retry_while_loading() -> None:
    with pytest.raises(HTTPException) as exception_info:
        enforce_guard(_fake_state(is_loading=True), '/home')

    assert exception_info.value.status_code == 503
    assert exception_info.value.headers == {'Retry-After': '1'}


def test_enforce_guard_sends_anonymous_users_to_login() -> None:
    with pytest.raises(HTTPException) as exception_info:
        enforce_guard(_fake_state(), '/admin/create-course')

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == {'message': 'Not authenticated', 'redirect_to': '/login'}


def test_enforce_guard_sends_wrong_role_to_its_home() -> None:
    with pytest.raises(HTTPException) as exception_info:
        enforce_guard(_fake_state(user=USER, role=Role.STUDENT), '/admin/create-course')

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail['redirect_to'] == '/student/dashboard'


def test_require_view_checks_the_concrete_edit_path() -> None:
    dependency = require_view('edit-course')
    request = SimpleNamespace(path_params={'course_id': 'abc'})
    state = _fake_state(user=USER, role=Role.TUTOR)

    assert asyncio.run(dependency(request, state)) is state

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(dependency(request, _fake_state(user=USER, role=Role.STUDENT)))
    assert exception_info.value.status_code == 403


def test_guarded_view_renders_once_profile_load_recovers(register, make_state, monkeypatch) -> None:
    calls = []

    async def scenario():
        await register('tutor@example.com')
        state = await make_state()
        original = state.backend.select_profile

        async def flaky_select_profile(user_id):
            calls.append(user_id)
            if len(calls) <= 2:
                raise BackendError('profiles unavailable')
            return await original(user_id)

        monkeypatch.setattr(state.backend, 'select_profile', flaky_select_profile)
        monkeypatch.setattr(auth_session, 'PROFILE_RETRY_SECONDS', 0)
        dependency = require_view('dashboard')
        request = SimpleNamespace(path_params={})
        try:
            await state.auth.login('tutor@example.com', 'secret123')
            await state.auth.wait_for_events()
            stuck_role = state.auth.role
            rendered = await dependency(request, state)
            return stuck_role, rendered is state, state.auth.role
        finally:
            await state.close()

    stuck_role, rendered, role = asyncio.run(scenario())

    assert stuck_role is None
    assert rendered is True
    assert role == Role.TUTOR
    assert len(calls) == 3


def test_tutor_course_lifecycle_through_routes(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com', full_name='Tina Tutor')
        state = await make_state('tutor@example.com')
        try:
            created = await course_routes.create_course(CourseDraft(**payload('Geometry')), state)
            mine = await course_routes.list_courses(owner='me', state=state)
            updated = await course_routes.update_course(created.id, CourseChanges(duration='6 weeks'), state)
            fetched = await course_routes.get_course(created.id, state)
            await course_routes.delete_course(created.id, state)
            remaining = await course_routes.list_courses(owner=None, state=state)
            return created, mine, updated, fetched, remaining
        finally:
            await state.close()

    created, mine, updated, fetched, remaining = asyncio.run(scenario())

    assert created.owner.full_name == 'Tina Tutor'
    assert [course.id for course in mine] == [created.id]
    assert updated.duration == '6 weeks'
    assert fetched.duration == '6 weeks'
    assert remaining == []


def test_student_cannot_list_own_courses(register, make_state) -> None:
    async def scenario():
        await register('student@example.com', role='student')
        state = await make_state('student@example.com')
        try:
            await course_routes.list_courses(owner='me', state=state)
        finally:
            await state.close()

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(scenario())

    assert exception_info.value.status_code == 403


@pytest.mark.parametrize('action', ['get', 'delete'])
def test_missing_course_is_not_found(register, make_state, action: str) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            if action == 'get':
                await course_routes.get_course('missing-id', state)
            else:
                await course_routes.delete_course('missing-id', state)
        finally:
            await state.close()

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(scenario())

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Course not found.'
