"""Fixed navigation menu for each role."""
from __future__ import annotations

from pydantic import BaseModel

from tutorflow.domain import Role


class NavItem(BaseModel):
    name: str
    path: str


class NavigationMenu(BaseModel):
    role: Role
    title: str
    items: tuple[NavItem, ...]


COURSES = NavItem(name='Courses', path='/courses')
POPULAR_COURSES = NavItem(name='Popular Courses', path='/popular-courses')
PROFILE = NavItem(name='Profile', path='/profile')
REFERRALS = NavItem(name='Referrals', path='/admin/referral')
CREATE_COURSE = NavItem(name='Create Course', path='/admin/create-course')

MENUS: dict[Role, NavigationMenu] = {
    Role.STUDENT: NavigationMenu(
        role=Role.STUDENT,
        title='Student Portal',
        items=(
            NavItem(name='Dashboard', path='/student/dashboard'),
            NavItem(name='My Learning', path='/student/my-courses'),
            COURSES,
            POPULAR_COURSES,
            PROFILE,
        ),
    ),
    Role.TUTOR: NavigationMenu(
        role=Role.TUTOR,
        title='Tutor Panel',
        items=(
            NavItem(name='Dashboard', path='/home'),
            CREATE_COURSE,
            NavItem(name='My Courses', path='/admin/my-courses'),
            COURSES,
            POPULAR_COURSES,
            PROFILE,
            REFERRALS,
        ),
    ),
    Role.ADMIN: NavigationMenu(
        role=Role.ADMIN,
        title='Admin Control',
        items=(
            NavItem(name='Admin Dashboard', path='/home'),
            NavItem(name='Manage Users', path='/admin/users'),
            NavItem(name='Manage Courses', path='/admin/my-courses'),
            CREATE_COURSE,
            COURSES,
            POPULAR_COURSES,
            PROFILE,
            REFERRALS,
        ),
    ),
}


def menu_for(role: Role) -> NavigationMenu:
    return MENUS[role]
