"""
Local course list for one client, mirrored from the backend after each call.

No method raises: failures are logged and their message is left in
``error`` for the caller to render. ``is_loading`` and ``error`` are shared
by every operation and overwritten by whichever call ran last.
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tutorflow.auth.session import AuthController
from tutorflow.core.errors import BackendError, CourseFetchError, CourseWriteError, NotAuthenticated
from tutorflow.domain import Course, CourseChanges, CourseDraft, CourseOwner
from tutorflow.remote.base import RemoteBackend

logger = logging.getLogger(__name__)

COURSE_NOT_FOUND = 'Course not found.'


class CourseController:
    def __init__(self, backend: RemoteBackend, auth: AuthController):
        self._backend = backend
        self._auth = auth
        self.courses: list[Course] = []
        self.is_loading = False
        self.error: str | None = None

    def _begin(self) -> None:
        self.is_loading = True
        self.error = None

    def _fail(self, error: Exception, action: str) -> None:
        logger.error('Error %s: %s', action, error)
        self.error = getattr(error, 'message', None) or str(error)

    def reset(self) -> None:
        self.courses = []
        self.error = None
        self.is_loading = False

    async def fetch_all(self) -> list[Course]:
        return await self._fetch(user_id=None)

    async def fetch_by_owner(self, user_id: str) -> list[Course]:
        return await self._fetch(user_id=user_id)

    async def _fetch(self, user_id: str | None) -> list[Course]:
        self._begin()
        generation = self._auth.generation
        try:
            rows = await self._backend.select_courses(user_id)
            courses = [Course.from_row(row) for row in rows]
        except (BackendError, ValidationError) as exc:
            self._fail(CourseFetchError(str(exc)), 'fetching courses')
            self.courses = []
            return []
        finally:
            self.is_loading = False

        if generation != self._auth.generation:
            logger.info('Discarding course list: the session changed while it was loading.')
            return courses
        self.courses = courses
        return list(courses)

    async def fetch_by_id(self, course_id: str) -> Course | None:
        self._begin()
        try:
            row = await self._backend.select_course(course_id)
            course = Course.from_row(row) if row else None
        except (BackendError, ValidationError) as exc:
            self._fail(CourseFetchError(str(exc)), 'fetching course by id')
            return None
        finally:
            self.is_loading = False

        if course is None:
            self.error = COURSE_NOT_FOUND
        return course

    async def create(self, payload: CourseDraft | dict[str, Any]) -> Course | None:
        user = self._auth.user
        if user is None:
            self._fail(NotAuthenticated('User must be logged in to add a course.'), 'adding course')
            return None

        self._begin()
        try:
            draft = CourseDraft.model_validate(payload)
            row = await self._backend.insert_course({**draft.model_dump(mode='json'), 'user_id': user.id})
            course = Course.from_row(row)
        except (BackendError, ValidationError) as exc:
            self._fail(CourseWriteError(str(exc)), 'adding course')
            return None
        finally:
            self.is_loading = False

        if course.owner is None and self._auth.profile is not None:
            course.owner = CourseOwner(
                full_name=self._auth.profile.full_name,
                avatar_url=self._auth.profile.avatar_url,
            )
        self.courses = [course, *self.courses]
        return course

    async def update(self, course_id: str, payload: CourseChanges | dict[str, Any]) -> Course | None:
        self._begin()
        try:
            changes = CourseChanges.model_validate(payload).model_dump(mode='json', exclude_none=True)
            row = await self._backend.update_course(course_id, changes)
            course = Course.from_row(row) if row else None
        except (BackendError, ValidationError) as exc:
            self._fail(CourseWriteError(str(exc)), 'updating course')
            return None
        finally:
            self.is_loading = False

        if course is None:
            # Deleted or not ours; the caller refetches to resync.
            self._fail(CourseWriteError(COURSE_NOT_FOUND), 'updating course')
            return None

        updated = []
        for existing in self.courses:
            if existing.id == course.id:
                if course.owner is None:
                    course.owner = existing.owner
                updated.append(course)
            else:
                updated.append(existing)
        self.courses = updated
        return course

    async def delete(self, course_id: str) -> bool:
        self._begin()
        try:
            deleted = await self._backend.delete_course(course_id)
        except BackendError as exc:
            self._fail(CourseWriteError(str(exc)), 'deleting course')
            return False
        finally:
            self.is_loading = False

        if not deleted:
            self._fail(CourseWriteError(COURSE_NOT_FOUND), 'deleting course')
            return False

        self.courses = [course for course in self.courses if course.id != str(course_id)]
        return True
