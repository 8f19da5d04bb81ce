"""
Course analytics used by the dashboards.

There is no analytics source yet. ``PlaceholderAnalytics`` answers every
question with an explicit empty value so the dashboards render without
inventing numbers; swap in a real provider through ``AppState``.
"""
from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel

from tutorflow.domain import Course


POPULAR_COURSE_LIMIT = 6


class EnrollmentPoint(BaseModel):
    period: str
    students: int
    courses: int


class CourseStats(BaseModel):
    course_id: str
    title: str
    students: int | None = None
    rating: float | None = None


class ReferralStats(BaseModel):
    referred_users: int = 0
    earnings: float = 0.0


class AnalyticsProvider(Protocol):
    def rank_popular(self, courses: list[Course]) -> list[Course]: ...

    def enrollment_history(self, owner_id: str | None) -> list[EnrollmentPoint]: ...

    def course_stats(self, courses: list[Course]) -> list[CourseStats]: ...

    def enrolled_course_ids(self, student_id: str) -> list[str]: ...

    def referral_stats(self, user_id: str) -> ReferralStats: ...


class PlaceholderAnalytics:
    def rank_popular(self, courses: list[Course]) -> list[Course]:
        return list(courses)

    def enrollment_history(self, owner_id: str | None) -> list[EnrollmentPoint]:
        return []

    def course_stats(self, courses: list[Course]) -> list[CourseStats]:
        return [CourseStats(course_id=course.id, title=course.title) for course in courses]

    def enrolled_course_ids(self, student_id: str) -> list[str]:
        return []

    def referral_stats(self, user_id: str) -> ReferralStats:
        return ReferralStats()


def popular_courses(courses: list[Course], provider: AnalyticsProvider, limit: int = POPULAR_COURSE_LIMIT) -> list[Course]:
    return provider.rank_popular(courses)[:limit]
