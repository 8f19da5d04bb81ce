import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from tutorflow.core import config
from tutorflow.database import Base, engine, ensure_course_indexes
from tutorflow.models import course, profile, user  # noqa: F401  registers the tables on Base
from tutorflow.routes import auth_routes, course_routes, view_routes
from tutorflow.state import SessionRegistry

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='TutorFlow')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.state.registry = SessionRegistry()

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize() -> None:
    config.validate_runtime_config()
    if config.BACKEND != 'local':
        return
    try:
        Base.metadata.create_all(bind=engine)
        ensure_course_indexes()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('shutdown')
async def close_sessions() -> None:
    await app.state.registry.close_all()


@app.get('/')
def root():
    return {'status': 'TutorFlow API Running', 'backend': config.BACKEND}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(course_routes.router, prefix='/courses')
app.include_router(view_routes.router)
