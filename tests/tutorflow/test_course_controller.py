import asyncio

from tutorflow.core.errors import BackendError
from tutorflow.courses.controller import COURSE_NOT_FOUND


def test_create_then_fetch_by_id_round_trips(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com', full_name='Tina Tutor')
        state = await make_state('tutor@example.com')
        try:
            created = await state.courses.create(payload('Algebra Basics'))
            fetched = await state.courses.fetch_by_id(created.id)
            return created, fetched, state.courses.courses, state.auth.user
        finally:
            await state.close()

    created, fetched, courses, user = asyncio.run(scenario())

    assert fetched.id == created.id
    assert fetched.title == 'Algebra Basics'
    assert fetched.user_id == user.id
    assert [topic.name for topic in fetched.topics] == ['Equations']
    assert fetched.owner.full_name == 'Tina Tutor'
    assert [course.id for course in courses] == [created.id]


def test_fetch_all_is_idempotent_and_newest_first(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            first = await state.courses.create(payload('First'))
            second = await state.courses.create(payload('Second'))
            listing = await state.courses.fetch_all()
            again = await state.courses.fetch_all()
            return [first.id, second.id], listing, again, state.courses.courses
        finally:
            await state.close()

    created_ids, listing, again, courses = asyncio.run(scenario())

    assert [course.id for course in listing] == list(reversed(created_ids))
    assert listing == again
    assert courses == again


def test_delete_removes_course_from_later_listings(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            course = await state.courses.create(payload())
            deleted = await state.courses.delete(course.id)
            listing = await state.courses.fetch_all()
            return course.id, deleted, listing, state.courses.courses
        finally:
            await state.close()

    course_id, deleted, listing, courses = asyncio.run(scenario())

    assert deleted is True
    assert course_id not in {course.id for course in listing}
    assert courses == []


def test_update_replaces_course_in_place(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com', full_name='Tina Tutor')
        state = await make_state('tutor@example.com')
        try:
            older = await state.courses.create(payload('Older'))
            target = await state.courses.create(payload('Draft title'))
            updated = await state.courses.update(target.id, {'title': '  Final title  '})
            return older, updated, state.courses.courses
        finally:
            await state.close()

    older, updated, courses = asyncio.run(scenario())

    assert updated.title == 'Final title'
    assert updated.description == 'Linear equations from scratch.'
    assert [course.id for course in courses] == [updated.id, older.id]
    assert courses[0].title == 'Final title'
    assert courses[0].owner.full_name == 'Tina Tutor'


def test_update_of_missing_course_leaves_list_unchanged(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            await state.courses.create(payload())
            before = list(state.courses.courses)
            result = await state.courses.update('missing-id', {'title': 'Nope'})
            return before, result, state.courses.courses, state.courses.error
        finally:
            await state.close()

    before, result, after, error = asyncio.run(scenario())

    assert result is None
    assert after == before
    assert error == COURSE_NOT_FOUND


def test_update_rejects_blank_fields(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            course = await state.courses.create(payload())
            result = await state.courses.update(course.id, {'title': '   '})
            return result, state.courses.error
        finally:
            await state.close()

    result, error = asyncio.run(scenario())

    assert result is None
    assert 'Course fields cannot be blank.' in error


def test_create_without_user_reports_login_required(make_state, payload) -> None:
    async def scenario():
        state = await make_state()
        try:
            result = await state.courses.create(payload())
            return result, state.courses.error, state.courses.courses
        finally:
            await state.close()

    result, error, courses = asyncio.run(scenario())

    assert result is None
    assert error == 'User must be logged in to add a course.'
    assert courses == []


def test_create_rejects_incomplete_form(register, make_state, payload) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            missing_topics = {**payload(), 'topics': []}
            blank_title = {**payload(), 'title': ' '}
            first = await state.courses.create(missing_topics)
            first_error = state.courses.error
            second = await state.courses.create(blank_title)
            return first, first_error, second, state.courses.error, state.courses.courses
        finally:
            await state.close()

    first, first_error, second, second_error, courses = asyncio.run(scenario())

    assert first is None
    assert 'A course needs at least one topic.' in first_error
    assert second is None
    assert 'Please fill in all course details, image, duration, and topic fields.' in second_error
    assert courses == []


def test_student_cannot_create_course(register, make_state, payload) -> None:
    async def scenario():
        await register('student@example.com', role='student')
        state = await make_state('student@example.com')
        try:
            result = await state.courses.create(payload())
            return result, state.courses.error
        finally:
            await state.close()

    result, error = asyncio.run(scenario())

    assert result is None
    assert error == 'Only tutors and admins can create courses.'


def test_fetch_failure_resets_course_list(register, make_state, payload, monkeypatch) -> None:
    async def failing_select_courses(_user_id=None):
        raise BackendError('courses unavailable')

    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        try:
            await state.courses.create(payload())
            monkeypatch.setattr(state.backend, 'select_courses', failing_select_courses)
            result = await state.courses.fetch_all()
            return result, state.courses.courses, state.courses.error, state.courses.is_loading
        finally:
            await state.close()

    result, courses, error, is_loading = asyncio.run(scenario())

    assert result == []
    assert courses == []
    assert error == 'courses unavailable'
    assert is_loading is False


def test_fetch_by_owner_filters_to_that_tutor(register, make_state, payload) -> None:
    async def scenario():
        await register('tina@example.com', full_name='Tina')
        await register('tom@example.com', full_name='Tom')
        tina = await make_state('tina@example.com')
        tom = await make_state('tom@example.com')
        try:
            mine = await tina.courses.create(payload('Tina course'))
            await tom.courses.create(payload('Tom course'))
            owned = await tina.courses.fetch_by_owner(tina.auth.user.id)
            everything = await tina.courses.fetch_all()
            return mine.id, owned, everything
        finally:
            await tina.close()
            await tom.close()

    mine_id, owned, everything = asyncio.run(scenario())

    assert [course.id for course in owned] == [mine_id]
    assert len(everything) == 2


def test_delete_of_another_tutors_course_is_refused(register, make_state, payload) -> None:
    async def scenario():
        await register('tina@example.com')
        await register('tom@example.com')
        tina = await make_state('tina@example.com')
        tom = await make_state('tom@example.com')
        try:
            course = await tina.courses.create(payload())
            await tom.courses.fetch_all()
            deleted = await tom.courses.delete(course.id)
            return course.id, deleted, tom.courses.error, tom.courses.courses
        finally:
            await tina.close()
            await tom.close()

    course_id, deleted, error, courses = asyncio.run(scenario())

    assert deleted is False
    assert error == COURSE_NOT_FOUND
    assert [course.id for course in courses] == [course_id]


def test_fetch_started_before_logout_is_not_applied(register, make_state, payload, monkeypatch) -> None:
    async def scenario():
        await register('tutor@example.com')
        state = await make_state('tutor@example.com')
        gate = asyncio.Event()
        original = state.backend.select_courses

        async def slow_select_courses(user_id=None):
            await gate.wait()
            return await original(user_id)

        try:
            await state.courses.create(payload())
            state.courses.reset()
            monkeypatch.setattr(state.backend, 'select_courses', slow_select_courses)
            pending = asyncio.create_task(state.courses.fetch_all())
            await asyncio.sleep(0)
            await state.auth.logout()
            gate.set()
            result = await pending
            return result, state.courses.courses
        finally:
            await state.close()

    result, courses = asyncio.run(scenario())

    assert len(result) == 1
    assert courses == []
