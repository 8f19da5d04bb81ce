"""
Per-navigation access control.

``evaluate`` is a pure function of the requested path and the current auth
state; nothing is remembered between navigations.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from tutorflow.domain import Role, User


LOGIN_PATH = '/login'
STUDENT_HOME = '/student/dashboard'
STAFF_HOME = '/home'

ALL_ROLES = frozenset(Role)
STUDENT_ONLY = frozenset({Role.STUDENT})
STAFF_ROLES = frozenset({Role.TUTOR, Role.ADMIN})
ADMIN_ONLY = frozenset({Role.ADMIN})


class RouteDefinition(BaseModel):
    pattern: str
    view: str
    # None marks a public route.
    roles: frozenset[Role] | None = None

    def match(self, path: str) -> dict[str, str] | None:
        expected = _segments(self.pattern)
        actual = _segments(path)
        if len(expected) != len(actual):
            return None

        params: dict[str, str] = {}
        for expected_part, actual_part in zip(expected, actual):
            if expected_part.startswith('{') and expected_part.endswith('}'):
                params[expected_part[1:-1]] = actual_part
            elif expected_part != actual_part:
                return None
        return params


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split('?', 1)[0].split('/') if segment]


ROUTES: tuple[RouteDefinition, ...] = (
    RouteDefinition(pattern='/login', view='login'),
    RouteDefinition(pattern='/signup', view='signup'),
    RouteDefinition(pattern='/role-selection', view='role-selection'),
    RouteDefinition(pattern='/about-us', view='about-us', roles=ALL_ROLES),
    RouteDefinition(pattern='/courses', view='courses', roles=ALL_ROLES),
    RouteDefinition(pattern='/popular-courses', view='popular-courses', roles=ALL_ROLES),
    RouteDefinition(pattern='/contact-us', view='contact-us', roles=ALL_ROLES),
    RouteDefinition(pattern='/profile', view='profile', roles=ALL_ROLES),
    RouteDefinition(pattern='/student/dashboard', view='student-dashboard', roles=STUDENT_ONLY),
    RouteDefinition(pattern='/student/my-courses', view='student-courses', roles=STUDENT_ONLY),
    RouteDefinition(pattern='/home', view='dashboard', roles=STAFF_ROLES),
    RouteDefinition(pattern='/admin/create-course', view='create-course', roles=STAFF_ROLES),
    RouteDefinition(pattern='/admin/my-courses', view='my-courses', roles=STAFF_ROLES),
    RouteDefinition(pattern='/admin/my-courses/edit/{course_id}', view='edit-course', roles=STAFF_ROLES),
    RouteDefinition(pattern='/admin/referral', view='referral', roles=STAFF_ROLES),
    RouteDefinition(pattern='/admin/users', view='users', roles=ADMIN_ONLY),
)


class GuardOutcome(str, Enum):
    LOADING = 'loading'
    REDIRECT = 'redirect'
    RENDER = 'render'


class GuardDecision(BaseModel):
    outcome: GuardOutcome
    view: str | None = None
    redirect_to: str | None = None
    params: dict[str, str] = {}

    @classmethod
    def loading(cls) -> 'GuardDecision':
        return cls(outcome=GuardOutcome.LOADING)

    @classmethod
    def redirect(cls, path: str) -> 'GuardDecision':
        return cls(outcome=GuardOutcome.REDIRECT, redirect_to=path)

    @classmethod
    def render(cls, view: str, params: dict[str, str] | None = None) -> 'GuardDecision':
        return cls(outcome=GuardOutcome.RENDER, view=view, params=params or {})


def home_for(role: Role) -> str:
    return STUDENT_HOME if role == Role.STUDENT else STAFF_HOME


def resolve(path: str) -> tuple[RouteDefinition, dict[str, str]] | None:
    for route in ROUTES:
        params = route.match(path)
        if params is not None:
            return route, params
    return None


def find_route(view: str) -> RouteDefinition:
    for route in ROUTES:
        if route.view == view:
            return route
    raise KeyError(view)


def evaluate(path: str, *, is_loading: bool, user: User | None, role: Role | None) -> GuardDecision:
    if is_loading:
        return GuardDecision.loading()

    resolved = resolve(path)
    if resolved is not None and resolved[0].roles is None:
        return GuardDecision.render(resolved[0].view, resolved[1])

    if user is None:
        return GuardDecision.redirect(LOGIN_PATH)
    if role is None:
        # Signed in but the profile has not landed yet; the next auth event fills it in.
        return GuardDecision.loading()

    if resolved is None:
        return GuardDecision.redirect(home_for(role))

    route, params = resolved
    if role not in route.roles:
        return GuardDecision.redirect(home_for(role))
    return GuardDecision.render(route.view, params)
