from fastapi import APIRouter, Depends, HTTPException, Query, status

from tutorflow.auth.dependencies import enforce_guard, require_view
from tutorflow.courses.controller import COURSE_NOT_FOUND, CourseController
from tutorflow.domain import Course, CourseChanges, CourseDraft
from tutorflow.state import AppState

router = APIRouter(tags=['courses'])

OWN_COURSES_PATH = '/admin/my-courses'


def raise_course_error(controller: CourseController, fallback_status: int) -> None:
    detail = controller.error or 'Course request failed.'
    if detail == COURSE_NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    raise HTTPException(status_code=fallback_status, detail=detail)


@router.get('', response_model=list[Course])
async def list_courses(
    owner: str | None = Query(default=None),
    state: AppState = Depends(require_view('courses')),
):
    if owner == 'me':
        enforce_guard(state, OWN_COURSES_PATH)
        courses = await state.courses.fetch_by_owner(state.auth.user.id)
    elif owner:
        courses = await state.courses.fetch_by_owner(owner)
    else:
        courses = await state.courses.fetch_all()

    if state.courses.error:
        raise_course_error(state.courses, status.HTTP_503_SERVICE_UNAVAILABLE)
    return courses


@router.get('/{course_id}', response_model=Course)
async def get_course(course_id: str, state: AppState = Depends(require_view('courses'))):
    course = await state.courses.fetch_by_id(course_id)
    if course is None:
        raise_course_error(state.courses, status.HTTP_503_SERVICE_UNAVAILABLE)
    return course


@router.post('', response_model=Course, status_code=status.HTTP_201_CREATED)
async def create_course(data: CourseDraft, state: AppState = Depends(require_view('create-course'))):
    course = await state.courses.create(data)
    if course is None:
        raise_course_error(state.courses, status.HTTP_400_BAD_REQUEST)
    return course


@router.patch('/{course_id}', response_model=Course)
async def update_course(
    course_id: str,
    data: CourseChanges,
    state: AppState = Depends(require_view('edit-course')),
):
    course = await state.courses.update(course_id, data)
    if course is None:
        raise_course_error(state.courses, status.HTTP_400_BAD_REQUEST)
    return course


@router.delete('/{course_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(course_id: str, state: AppState = Depends(require_view('my-courses'))):
    deleted = await state.courses.delete(course_id)
    if not deleted:
        raise_course_error(state.courses, status.HTTP_400_BAD_REQUEST)
