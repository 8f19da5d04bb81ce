from fastapi import Depends, HTTPException, Request, Response, status

from tutorflow.auth import session as auth_session
from tutorflow.core import config
from tutorflow.routing import guard
from tutorflow.state import AppState, SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_app_state(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_registry),
) -> AppState:
    session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
    new_id, state = await registry.get_or_create(session_id)
    if new_id != session_id:
        response.set_cookie(
            config.SESSION_COOKIE_NAME,
            new_id,
            httponly=True,
            samesite='lax',
            secure=config.SESSION_COOKIE_SECURE,
        )
    request.state.session_id = new_id
    return state


async def get_existing_app_state(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> AppState | None:
    """Like ``get_app_state`` but never creates a state; read-only routes answer as signed out instead."""
    session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
    state = await registry.lookup(session_id)
    if state is not None:
        request.state.session_id = session_id
    return state


def enforce_guard(state: AppState, path: str) -> guard.GuardDecision:
    decision = guard.evaluate(
        path,
        is_loading=state.auth.is_loading,
        user=state.auth.user,
        role=state.auth.role,
    )
    if decision.outcome == guard.GuardOutcome.LOADING:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Loading authentication...",
            headers={"Retry-After": str(max(1, round(auth_session.PROFILE_RETRY_SECONDS)))},
        )
    if decision.outcome == guard.GuardOutcome.REDIRECT:
        if decision.redirect_to == guard.LOGIN_PATH:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"message": "Not authenticated", "redirect_to": decision.redirect_to},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Your role cannot open this page.", "redirect_to": decision.redirect_to},
        )
    return decision


def require_view(view: str):
    """Dependency that lets a request through only when the guard would render ``view``."""
    route = guard.find_route(view)

    async def dependency(request: Request, state: AppState = Depends(get_app_state)) -> AppState:
        path = route.pattern.format(**request.path_params) if request.path_params else route.pattern
        await state.auth.ensure_profile()
        enforce_guard(state, path)
        return state

    return dependency
