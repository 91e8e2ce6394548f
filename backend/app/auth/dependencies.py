"""FastAPI dependencies for auth."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from app.auth.sessions import SessionStore, get_session_store
from app.config import get_settings
from app.users.models import User
from app.users.store import UserStore, get_user_store

log = logging.getLogger(__name__)


async def get_current_user(
    request: Request,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    users: Annotated[UserStore, Depends(get_user_store)],
) -> User:
    """Resolve the session cookie to the current user; raise 401 if invalid or missing."""
    sid = request.cookies.get(get_settings().session_cookie_name)
    if not sid:
        log.debug("Request missing session cookie")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user_id = await sessions.resolve(sid)
    if not user_id:
        log.debug("Unknown or expired session")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = await users.get_by_id(user_id)
    if not user:
        log.warning("Session valid but user not found: id=%s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user
