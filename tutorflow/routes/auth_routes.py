import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, field_validator, model_validator

from tutorflow.auth.dependencies import get_app_state, get_existing_app_state, get_registry
from tutorflow.core import config
from tutorflow.core.errors import AuthError, BackendError, EmailAlreadyRegistered, InvalidCredentials, NotAuthenticated
from tutorflow.domain import Profile, Role, User
from tutorflow.routing import guard
from tutorflow.state import AppState, SessionRegistry

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

BACKEND_UNAVAILABLE = 'Authentication service unavailable. Please try again.'


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class SignupRequest(BaseModel):
    email: str
    password: str
    confirm_password: str
    full_name: str
    role: Role = Role.STUDENT

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Full name is required.')
        return normalized

    @model_validator(mode='after')
    def validate_passwords_match(self) -> 'SignupRequest':
        if self.password != self.confirm_password:
            raise ValueError('Passwords do not match.')
        return self


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    role: Role | None = None


class SessionResponse(BaseModel):
    user: User | None = None
    profile: Profile | None = None
    is_loading: bool
    home: str | None = None


def session_response(state: AppState) -> SessionResponse:
    role = state.auth.role
    return SessionResponse(
        user=state.auth.user,
        profile=state.auth.profile,
        is_loading=state.auth.is_loading,
        home=guard.home_for(role) if role else None,
    )


@router.post('/login', response_model=SessionResponse)
async def login(data: LoginRequest, state: AppState = Depends(get_app_state)):
    try:
        await state.auth.login(data.email, data.password)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except BackendError as exc:
        logger.exception('Login failed for %s', data.email)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=BACKEND_UNAVAILABLE) from exc

    return session_response(state)


@router.post('/signup', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, state: AppState = Depends(get_app_state)):
    try:
        await state.auth.signup(data.email, data.password, data.full_name, data.role)
    except EmailAlreadyRegistered as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except BackendError as exc:
        logger.exception('Signup failed for %s', data.email)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=BACKEND_UNAVAILABLE) from exc

    # The profile arrives with the SIGNED_IN notification; let it land before answering.
    await state.auth.wait_for_events()
    return session_response(state)


@router.post('/logout', status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    response: Response,
    state: AppState = Depends(get_app_state),
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        await state.auth.logout()
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc

    await registry.discard(request.state.session_id)
    response.delete_cookie(config.SESSION_COOKIE_NAME)


@router.get('/me', response_model=SessionResponse)
async def me(state: AppState | None = Depends(get_existing_app_state)):
    if state is None:
        return SessionResponse(is_loading=False)
    await state.auth.ensure_profile()
    return session_response(state)


@router.patch('/profile', response_model=SessionResponse)
async def update_profile(data: ProfileUpdateRequest, state: AppState = Depends(get_app_state)):
    try:
        await state.auth.update_profile(
            full_name=data.full_name,
            avatar_url=data.avatar_url,
            bio=data.bio,
            role=data.role,
        )
    except NotAuthenticated as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except BackendError as exc:
        logger.exception('Profile update failed')
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc

    return session_response(state)
