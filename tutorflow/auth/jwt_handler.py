from datetime import datetime, timedelta, timezone
import secrets

import jwt

from tutorflow.core import config


def create_access_token(subject: str, email: str | None = None, expires_minutes: int | None = None) -> tuple[str, int]:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=expire_minutes)
    payload = {"sub": subject, "email": email, "exp": expire, "iat": issued_at}
    token = jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)
    return token, int(expire.timestamp())


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def create_refresh_token() -> str:
    return secrets.token_urlsafe(32)
