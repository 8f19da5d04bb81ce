import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# "supabase" talks to the hosted project, "local" uses the SQLAlchemy tables below.
BACKEND = os.getenv("BACKEND", "local").strip().lower()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tutorflow.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "tutorflow_sid")
SESSION_COOKIE_SECURE = _get_bool(os.getenv("SESSION_COOKIE_SECURE"), default=False)
SESSION_IDLE_SECONDS = int(os.getenv("SESSION_IDLE_SECONDS", "3600"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

DEFAULT_AVATAR_URL = os.getenv(
    "DEFAULT_AVATAR_URL",
    "https://storage.googleapis.com/hostinger-horizons-assets-prod/"
    "4bfa6c8f-fcb4-4d67-b9c8-ea99cda758b0/097581b16d7c6b481fc48639892c1e5f.png",
)
REFERRAL_BASE_URL = os.getenv("REFERRAL_BASE_URL", "https://your-tutorflow-app.com")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BACKEND not in {"local", "supabase"}:
        raise RuntimeError(f"Unknown BACKEND {BACKEND!r}; expected 'local' or 'supabase'.")
    if BACKEND == "supabase" and not (SUPABASE_URL and SUPABASE_ANON_KEY):
        raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set for the supabase backend.")
