"""
In-process stand-in for the hosted backend, backed by the SQLAlchemy tables.

It mirrors what the hosted project does for this app: password sign-in that
issues JWT sessions, a profile row created from the signup metadata, and
row rules that only let owners write their own profile and courses.
"""
from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import hmac
import logging
import secrets
from typing import Any

import jwt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from tutorflow.auth import jwt_handler
from tutorflow.core.errors import AuthError, BackendError, EmailAlreadyRegistered, InvalidCredentials
from tutorflow.database import SessionLocal
from tutorflow.domain import AuthEvent, AuthResult, Role, Session, User
from tutorflow.models.course import Course
from tutorflow.models.profile import Profile
from tutorflow.models.user import AuthUser
from tutorflow.remote.base import AuthListener, ListenerSubscription

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PASSWORD_HASH_ITERATIONS = 260_000
COURSE_WRITABLE_FIELDS = ('title', 'description', 'image_url', 'duration', 'topics')
PROFILE_WRITABLE_FIELDS = ('full_name', 'avatar_url', 'role', 'bio', 'updated_at')
PROFILE_SORT_COLUMNS = {
    'full_name': Profile.full_name,
    'role': Profile.role,
    'updated_at': Profile.updated_at,
    'email': AuthUser.email,
}
COURSE_OWNER_ROLES = {Role.TUTOR.value, Role.ADMIN.value}
DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac('sha256', password.encode(), salt.encode(), PASSWORD_HASH_ITERATIONS)
    return f'pbkdf2_sha256${PASSWORD_HASH_ITERATIONS}${salt}${digest.hex()}'


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        _, iterations, salt, expected = hashed_password.split('$')
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac('sha256', password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def profile_to_row(profile: Profile, email: str | None = None) -> dict[str, Any]:
    row = {
        'id': profile.id,
        'full_name': profile.full_name,
        'avatar_url': profile.avatar_url,
        'role': profile.role,
        'bio': profile.bio,
        'updated_at': profile.updated_at,
    }
    if email is not None:
        row['email'] = email
    return row


def course_to_row(course: Course) -> dict[str, Any]:
    owner = course.owner
    return {
        'id': course.id,
        'title': course.title,
        'description': course.description,
        'image_url': course.image_url,
        'duration': course.duration,
        'topics': list(course.topics or []),
        'user_id': course.user_id,
        'created_at': course.created_at,
        'profiles': {
            'full_name': owner.full_name,
            'avatar_url': owner.avatar_url,
        } if owner is not None else None,
    }


class LocalBackend:
    """One instance per client session; the database is shared, the auth session is not."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    # --- auth ------------------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> ListenerSubscription:
        self._listeners.append(listener)
        return ListenerSubscription(self._listeners, listener)

    def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def _issue_session(self, user: AuthUser) -> Session:
        token, expires_at = jwt_handler.create_access_token(subject=user.id, email=user.email)
        return Session(
            access_token=token,
            refresh_token=jwt_handler.create_refresh_token(),
            expires_at=expires_at,
            user=User(id=user.id, email=user.email),
        )

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthResult:
        normalized_email = email.strip().lower()
        if not normalized_email:
            raise AuthError('Email is required.')
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f'Password should be at least {MIN_PASSWORD_LENGTH} characters.')

        role = metadata.get('role')
        if role not in {member.value for member in Role}:
            role = Role.STUDENT.value

        db = self._session_factory()
        try:
            if db.query(AuthUser).filter(AuthUser.email == normalized_email).first():
                raise EmailAlreadyRegistered('User already registered')

            user = AuthUser(email=normalized_email, hashed_password=hash_password(password))
            db.add(user)
            db.flush()
            # Same effect as the handle_new_user trigger on the hosted project.
            db.add(
                Profile(
                    id=user.id,
                    full_name=metadata.get('full_name'),
                    avatar_url=metadata.get('avatar_url'),
                    role=role,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            db.commit()
            db.refresh(user)
            session = self._issue_session(user)
        except IntegrityError as exc:
            db.rollback()
            raise EmailAlreadyRegistered('User already registered') from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

        self._session = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return AuthResult(user=session.user, session=session)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        normalized_email = email.strip().lower()

        db = self._session_factory()
        try:
            user = db.query(AuthUser).filter(AuthUser.email == normalized_email).first()
            if user is None or not verify_password(password, user.hashed_password):
                raise InvalidCredentials('Invalid login credentials')
            session = self._issue_session(user)
        except SQLAlchemyError as exc:
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

        self._session = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return AuthResult(user=session.user, session=session)

    async def sign_out(self) -> None:
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self) -> Session | None:
        if self._session is None:
            return None
        try:
            jwt_handler.decode_access_token(self._session.access_token)
        except jwt.ExpiredSignatureError:
            return await self.refresh_session()
        except jwt.InvalidTokenError:
            logger.warning('Discarding a session with an invalid access token.')
            self._session = None
            return None
        return self._session

    async def refresh_session(self) -> Session | None:
        if self._session is None:
            return None
        token, expires_at = jwt_handler.create_access_token(
            subject=self._session.user.id,
            email=self._session.user.email,
        )
        self._session = self._session.model_copy(
            update={
                'access_token': token,
                'refresh_token': jwt_handler.create_refresh_token(),
                'expires_at': expires_at,
            }
        )
        self._emit(AuthEvent.TOKEN_REFRESHED, self._session)
        return self._session

    def _require_session_user(self, table: str) -> str:
        if self._session is None:
            raise BackendError(f'new row violates row-level security policy for table "{table}"')
        return self._session.user.id

    # --- profiles ----------------------------------------------------------------

    async def select_profile(self, user_id: str) -> dict[str, Any] | None:
        db = self._session_factory()
        try:
            profile = db.query(Profile).filter(Profile.id == user_id).first()
            return profile_to_row(profile) if profile else None
        except SQLAlchemyError as exc:
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def select_profiles(self, order_by: str = 'full_name', ascending: bool = True) -> list[dict[str, Any]]:
        column = PROFILE_SORT_COLUMNS.get(order_by)
        if column is None:
            raise BackendError(f'column profiles.{order_by} does not exist')

        db = self._session_factory()
        try:
            rows = (
                db.query(Profile, AuthUser.email)
                .join(AuthUser, AuthUser.id == Profile.id)
                .order_by(column.asc() if ascending else column.desc())
                .all()
            )
            return [profile_to_row(profile, email) for profile, email in rows]
        except SQLAlchemyError as exc:
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def upsert_profile(self, row: dict[str, Any]) -> None:
        user_id = self._require_session_user('profiles')
        if row.get('id') != user_id:
            raise BackendError('new row violates row-level security policy for table "profiles"')

        db = self._session_factory()
        try:
            profile = db.query(Profile).filter(Profile.id == user_id).first()
            if profile is None:
                profile = Profile(id=user_id)
                db.add(profile)
            for field in PROFILE_WRITABLE_FIELDS:
                if field in row:
                    value = row[field]
                    if field == 'updated_at' and isinstance(value, str):
                        value = datetime.fromisoformat(value)
                    setattr(profile, field, value)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    # --- courses -----------------------------------------------------------------

    async def select_courses(self, user_id: str | None = None) -> list[dict[str, Any]]:
        db = self._session_factory()
        try:
            query = db.query(Course)
            if user_id:
                query = query.filter(Course.user_id == user_id)
            courses = query.order_by(Course.created_at.desc()).all()
            return [course_to_row(course) for course in courses]
        except SQLAlchemyError as exc:
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def select_course(self, course_id: str) -> dict[str, Any] | None:
        db = self._session_factory()
        try:
            course = db.query(Course).filter(Course.id == str(course_id)).first()
            return course_to_row(course) if course else None
        except SQLAlchemyError as exc:
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def insert_course(self, row: dict[str, Any]) -> dict[str, Any]:
        user_id = self._require_session_user('courses')
        if row.get('user_id') != user_id:
            raise BackendError('new row violates row-level security policy for table "courses"')

        db = self._session_factory()
        try:
            owner = db.query(Profile).filter(Profile.id == user_id).first()
            if owner is None or owner.role not in COURSE_OWNER_ROLES:
                raise BackendError('Only tutors and admins can create courses.')

            course = Course(user_id=user_id, **{field: row.get(field) for field in COURSE_WRITABLE_FIELDS})
            db.add(course)
            db.commit()
            db.refresh(course)
            return course_to_row(course)
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def update_course(self, course_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        user_id = self._require_session_user('courses')

        db = self._session_factory()
        try:
            course = db.query(Course).filter(Course.id == str(course_id), Course.user_id == user_id).first()
            if course is None:
                return None
            for field in COURSE_WRITABLE_FIELDS:
                if field in changes:
                    setattr(course, field, changes[field])
            db.commit()
            db.refresh(course)
            return course_to_row(course)
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def delete_course(self, course_id: str) -> bool:
        user_id = self._require_session_user('courses')

        db = self._session_factory()
        try:
            course = db.query(Course).filter(Course.id == str(course_id), Course.user_id == user_id).first()
            if course is None:
                return False
            db.delete(course)
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(DATABASE_UNAVAILABLE) from exc
        finally:
            db.close()

    async def close(self) -> None:
        self._listeners.clear()
