"""JSON view models for the role dashboards and the other pages behind the guard."""
from enum import Enum
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from tutorflow.analytics import CourseStats, EnrollmentPoint, ReferralStats, popular_courses
from tutorflow.auth.dependencies import get_existing_app_state, require_view
from tutorflow.core import config
from tutorflow.core.errors import BackendError
from tutorflow.domain import Course, Role
from tutorflow.routing import guard
from tutorflow.routing.navigation import NavigationMenu, menu_for
from tutorflow.state import AppState

router = APIRouter(tags=['views'])

logger = logging.getLogger(__name__)

DEFAULT_BIO = 'Passionate learner and educator, ready to share knowledge!'
RECOMMENDED_COURSE_LIMIT = 3
COURSE_STATS_LIMIT = 5
USER_SORT_KEYS = {'full_name', 'email', 'role', 'updated_at'}


class SortDirection(str, Enum):
    ASCENDING = 'ascending'
    DESCENDING = 'descending'


class NavigationResponse(BaseModel):
    decision: guard.GuardDecision
    menu: NavigationMenu | None = None


class ProfileView(BaseModel):
    email: str | None = None
    full_name: str
    avatar_url: str | None = None
    bio: str
    role: Role


class TutorDashboardView(BaseModel):
    total_courses: int
    recent_courses: list[Course]
    course_stats: list[CourseStats]
    enrollment_history: list[EnrollmentPoint]


class StudentDashboardView(BaseModel):
    greeting_name: str
    enrolled_courses: list[Course]
    recommended_courses: list[Course]


class UserRow(BaseModel):
    id: str
    full_name: str | None = None
    email: str
    role: str | None = None
    avatar_url: str | None = None
    joined: str | None = None


class ReferralView(BaseModel):
    referral_code: str
    referral_link: str
    stats: ReferralStats


def _raise_for_course_error(state: AppState) -> None:
    if state.courses.error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=state.courses.error)


def filter_users(rows: list[dict], search: str) -> list[dict]:
    term = search.strip().lower()
    if not term:
        return rows
    return [
        row for row in rows
        if term in (row.get('full_name') or '').lower()
        or term in (row.get('email') or '').lower()
        or term in (row.get('role') or '').lower()
    ]


def to_user_row(row: dict) -> UserRow:
    updated_at = row.get('updated_at')
    return UserRow(
        id=str(row['id']),
        full_name=row.get('full_name'),
        email=row.get('email') or 'N/A',
        role=row.get('role'),
        avatar_url=row.get('avatar_url'),
        joined=updated_at.isoformat() if hasattr(updated_at, 'isoformat') else updated_at,
    )


@router.get('/navigate', response_model=NavigationResponse)
async def navigate(path: str = Query(...), state: AppState | None = Depends(get_existing_app_state)):
    if state is None:
        return NavigationResponse(decision=guard.evaluate(path, is_loading=False, user=None, role=None))

    await state.auth.ensure_profile()
    decision = guard.evaluate(
        path,
        is_loading=state.auth.is_loading,
        user=state.auth.user,
        role=state.auth.role,
    )
    role = state.auth.role
    return NavigationResponse(decision=decision, menu=menu_for(role) if role else None)


@router.get('/navigation', response_model=NavigationMenu)
async def navigation(state: AppState | None = Depends(get_existing_app_state)):
    if state is not None:
        await state.auth.ensure_profile()
    role = state.auth.role if state is not None else None
    if role is None or state.auth.user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authenticated')
    return menu_for(role)


@router.get('/views/profile', response_model=ProfileView)
def profile_view(state: AppState = Depends(require_view('profile'))):
    user = state.auth.user
    profile = state.auth.profile
    fallback_name = (user.email or '').split('@')[0]
    return ProfileView(
        email=user.email,
        full_name=profile.full_name or fallback_name,
        avatar_url=profile.avatar_url,
        bio=profile.bio or DEFAULT_BIO,
        role=profile.role,
    )


@router.get('/views/home', response_model=TutorDashboardView)
async def tutor_dashboard(state: AppState = Depends(require_view('dashboard'))):
    if state.auth.role == Role.ADMIN:
        courses = await state.courses.fetch_all()
        owner_id = None
    else:
        owner_id = state.auth.user.id
        courses = await state.courses.fetch_by_owner(owner_id)
    _raise_for_course_error(state)

    return TutorDashboardView(
        total_courses=len(courses),
        recent_courses=courses[:COURSE_STATS_LIMIT],
        course_stats=state.analytics.course_stats(courses[:COURSE_STATS_LIMIT]),
        enrollment_history=state.analytics.enrollment_history(owner_id),
    )


@router.get('/views/student/dashboard', response_model=StudentDashboardView)
async def student_dashboard(state: AppState = Depends(require_view('student-dashboard'))):
    courses = await state.courses.fetch_all()
    _raise_for_course_error(state)

    enrolled_ids = set(state.analytics.enrolled_course_ids(state.auth.user.id))
    enrolled = [course for course in courses if course.id in enrolled_ids]
    recommended = [course for course in courses if course.id not in enrolled_ids][:RECOMMENDED_COURSE_LIMIT]
    return StudentDashboardView(
        greeting_name=state.auth.profile.full_name or 'Student',
        enrolled_courses=enrolled,
        recommended_courses=recommended,
    )


@router.get('/views/student/my-courses', response_model=list[Course])
async def student_courses(state: AppState = Depends(require_view('student-courses'))):
    courses = await state.courses.fetch_all()
    _raise_for_course_error(state)

    enrolled_ids = set(state.analytics.enrolled_course_ids(state.auth.user.id))
    return [course for course in courses if course.id in enrolled_ids]


@router.get('/views/popular-courses', response_model=list[Course])
async def popular_courses_view(state: AppState = Depends(require_view('popular-courses'))):
    courses = await state.courses.fetch_all()
    _raise_for_course_error(state)
    return popular_courses(courses, state.analytics)


@router.get('/views/admin/users', response_model=list[UserRow])
async def admin_users(
    search: str = Query(default=''),
    sort: str = Query(default='full_name'),
    direction: SortDirection = Query(default=SortDirection.ASCENDING),
    state: AppState = Depends(require_view('users')),
):
    if sort not in USER_SORT_KEYS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f'Cannot sort users by {sort!r}.')

    ascending = direction == SortDirection.ASCENDING
    try:
        # profiles carries no email column on the hosted project; that sort happens here.
        rows = await state.backend.select_profiles(
            order_by='full_name' if sort == 'email' else sort,
            ascending=ascending,
        )
    except BackendError as exc:
        logger.error('Error fetching users: %s', exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc

    if sort == 'email':
        rows = sorted(rows, key=lambda row: (row.get('email') or '').lower(), reverse=not ascending)
    return [to_user_row(row) for row in filter_users(rows, search)]


@router.get('/views/admin/referral', response_model=ReferralView)
def referral_view(state: AppState = Depends(require_view('referral'))):
    code = state.referral_code
    return ReferralView(
        referral_code=code,
        referral_link=f'{config.REFERRAL_BASE_URL}/signup?ref={code}',
        stats=state.analytics.referral_stats(state.auth.user.id),
    )
