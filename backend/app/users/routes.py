"""User routes: register, login, logout, current user, change password."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.sessions import (
    SessionStore,
    clear_session_cookie,
    get_session_store,
    set_session_cookie,
)
from app.config import get_settings
from app.db.session import get_db
from app.limiter import limiter
from app.users.models import ChangePassword, User, UserLogin, UserRegister, UserResponse
from app.users.service import (
    UserExistsError,
    authenticate,
    change_password as do_change_password,
    register_user,
    username_for_log,
)
from app.users.store import UserStore, get_user_store

router = APIRouter(prefix="/api", tags=["users"])
log = logging.getLogger(__name__)


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


def _user_json(user: User, status_code: int) -> JSONResponse:
    body = UserResponse.model_validate(user).model_dump(mode="json")
    return JSONResponse(content=body, status_code=status_code)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(_login_rate_limit)
async def register(
    request: Request,
    body: UserRegister,
    users: Annotated[UserStore, Depends(get_user_store)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> JSONResponse:
    """Create an account and log it in."""
    try:
        user = await register_user(users, body)
    except UserExistsError as e:
        log.info("Registration rejected for %s: %s", username_for_log(body.username), e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    sid = await sessions.create(user.id)
    await session.commit()
    response = _user_json(user, status.HTTP_201_CREATED)
    set_session_cookie(response, sid, get_settings())
    return response


@router.post("/login", response_model=UserResponse)
@limiter.limit(_login_rate_limit)
async def login(
    request: Request,
    body: UserLogin,
    users: Annotated[UserStore, Depends(get_user_store)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> JSONResponse:
    """Login with username and password; sets the session cookie."""
    if not body.username or not body.password:
        log.info("Login attempt with missing credentials")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and password are required",
        )
    user = await authenticate(users, body.username, body.password)
    if user is None:
        log.warning("Login failed for username=%s", username_for_log(body.username))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    sid = await sessions.create(user.id)
    await session.commit()
    log.info("Login successful for user id=%s", user.id)
    response = _user_json(user, status.HTTP_200_OK)
    set_session_cookie(response, sid, get_settings())
    return response


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """End the current session (if any) and clear the cookie."""
    settings = get_settings()
    await sessions.destroy(request.cookies.get(settings.session_cookie_name))
    await session.commit()
    clear_session_cookie(response, settings)
    return {"detail": "Logged out"}


@router.get("/user", response_model=UserResponse)
async def me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Return current authenticated user."""
    return UserResponse.model_validate(current_user)


@router.post("/user/password")
@limiter.limit(_login_rate_limit)
async def change_password(
    request: Request,
    body: ChangePassword,
    current_user: Annotated[User, Depends(get_current_user)],
    users: Annotated[UserStore, Depends(get_user_store)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Change the current user's password. Requires current password."""
    if not body.new_password or len(body.new_password.strip()) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be at least 8 characters",
        )
    if not await do_change_password(users, current_user, body.current_password, body.new_password):
        log.warning("Change password failed for user id=%s: wrong current password", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )
    await session.commit()
    return {"detail": "Password updated"}
