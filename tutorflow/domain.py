"""Domain types shared by the remote adapters, the controllers and the routes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    STUDENT = 'student'
    TUTOR = 'tutor'
    ADMIN = 'admin'


class AuthEvent(str, Enum):
    INITIAL_SESSION = 'INITIAL_SESSION'
    SIGNED_IN = 'SIGNED_IN'
    SIGNED_OUT = 'SIGNED_OUT'
    TOKEN_REFRESHED = 'TOKEN_REFRESHED'
    USER_UPDATED = 'USER_UPDATED'
    USER_DELETED = 'USER_DELETED'
    PASSWORD_RECOVERY = 'PASSWORD_RECOVERY'
    MFA_CHALLENGE_VERIFIED = 'MFA_CHALLENGE_VERIFIED'


class User(BaseModel):
    id: str
    email: str | None = None


class Session(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    user: User


class AuthResult(BaseModel):
    """What sign-up and sign-in hand back; the session is absent when email confirmation is pending."""
    user: User | None = None
    session: Session | None = None


class Profile(BaseModel):
    id: str
    full_name: str | None = None
    avatar_url: str | None = None
    role: Role
    bio: str | None = None
    updated_at: datetime | None = None


class Topic(BaseModel):
    name: str
    content: str


class CourseOwner(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None


class Course(BaseModel):
    id: str
    title: str
    description: str | None = None
    image_url: str | None = None
    duration: str | None = None
    topics: list[Topic] = Field(default_factory=list)
    user_id: str | None = None
    created_at: datetime | None = None
    owner: CourseOwner | None = None

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, value) -> str:
        return str(value)

    @field_validator('topics', mode='before')
    @classmethod
    def default_topics(cls, value):
        return value or []

    @classmethod
    def from_row(cls, row: dict) -> 'Course':
        """Build a course from a table row, folding the joined ``profiles`` column into ``owner``."""
        data = dict(row)
        owner = data.pop('profiles', None)
        if owner is not None and 'owner' not in data:
            data['owner'] = owner
        return cls.model_validate(data)


def _check_topics(topics: list[Topic]) -> list[Topic]:
    if not topics:
        raise ValueError('A course needs at least one topic.')
    for topic in topics:
        if not topic.name.strip() or not topic.content.strip():
            raise ValueError('Every topic needs a name and content.')
    return topics


class CourseDraft(BaseModel):
    """Fields a tutor submits when creating a course."""
    title: str
    description: str
    image_url: str
    duration: str
    topics: list[Topic]

    @field_validator('title', 'description', 'image_url', 'duration')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please fill in all course details, image, duration, and topic fields.')
        return normalized

    @field_validator('topics')
    @classmethod
    def validate_topics(cls, value: list[Topic]) -> list[Topic]:
        return _check_topics(value)


class CourseChanges(BaseModel):
    """Partial course update; omitted fields are left as they are."""
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    duration: str | None = None
    topics: list[Topic] | None = None

    @field_validator('title', 'description', 'image_url', 'duration')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Course fields cannot be blank.')
        return normalized

    @field_validator('topics')
    @classmethod
    def validate_topics(cls, value: list[Topic] | None) -> list[Topic] | None:
        if value is None:
            return None
        return _check_topics(value)
