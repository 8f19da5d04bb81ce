import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('BACKEND', 'local')

from tutorflow.database import Base  # noqa: E402
from tutorflow.models import course, profile, user  # noqa: E402,F401
from tutorflow.remote import local_backend  # noqa: E402
from tutorflow.remote.local_backend import LocalBackend  # noqa: E402
from tutorflow.state import AppState  # noqa: E402

PASSWORD = 'secret123'


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(local_backend, 'PASSWORD_HASH_ITERATIONS', 1_000)


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def register(session_factory):
    """Create an account from a throwaway backend so the state under test stays signed out."""

    async def _register(email: str, full_name: str = 'Test User', role: str = 'tutor', password: str = PASSWORD):
        backend = LocalBackend(session_factory)
        result = await backend.sign_up(email, password, {'full_name': full_name, 'role': role})
        return result.user

    return _register


@pytest.fixture
def make_state(session_factory):
    async def _make_state(email: str | None = None, password: str = PASSWORD) -> AppState:
        state = AppState(LocalBackend(session_factory))
        await state.start()
        if email is not None:
            await state.auth.login(email, password)
            await state.auth.wait_for_events()
        return state

    return _make_state


def course_payload(title: str = 'Algebra Basics') -> dict:
    return {
        'title': title,
        'description': 'Linear equations from scratch.',
        'image_url': 'https://example.com/algebra.png',
        'duration': '4 weeks',
        'topics': [{'name': 'Equations', 'content': 'Solving for x.'}],
    }


@pytest.fixture
def payload():
    return course_payload
