from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from tutorflow.core import config


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_course_indexes_checked = False


def ensure_course_indexes() -> None:
    """Create indexes that ``create_all`` does not declare on the models."""
    global _course_indexes_checked

    if _course_indexes_checked:
        return

    with _schema_lock:
        if _course_indexes_checked:
            return

        if 'courses' not in inspect(engine).get_table_names():
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_courses_owner_created ON courses(user_id, created_at)')
            )

        _course_indexes_checked = True
