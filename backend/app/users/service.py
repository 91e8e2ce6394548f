"""User service: registration, authentication, password change."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from app.auth.passwords import burn_verification, hash_password, verify_password
from app.config import get_settings
from app.users.models import User, UserRegister
from app.users.store import UserStore

log = logging.getLogger(__name__)


class UserExistsError(ValueError):
    """Username or email is already registered."""


def username_for_log(username: Optional[str]) -> str:
    """Username as it may appear in logs: raw only when log_usernames is set."""
    if get_settings().log_usernames:
        return repr(username)
    if not username:
        return "<empty>"
    return f"{username[:1]}***"


async def register_user(store: UserStore, payload: UserRegister) -> User:
    """
    Create a new user with a hashed password.
    Raises UserExistsError if username or email is taken. Caller must commit session.
    """
    if await store.get_by_username(payload.username):
        raise UserExistsError("Username already exists")
    if await store.get_by_email(payload.email):
        raise UserExistsError("Email already exists")
    password = await hash_password(payload.password)
    try:
        user = await store.create(
            username=payload.username,
            password=password,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except IntegrityError:
        # Lost a race with a concurrent registration; the unique constraint decides
        await store.session.rollback()
        raise UserExistsError("Username or email already exists")
    log.info("Registered user id=%s username=%s", user.id, username_for_log(user.username))
    return user


async def authenticate(store: UserStore, username: str, password: str) -> Optional[User]:
    """Return the user if the password matches, else None.

    Unknown usernames still pay for one derivation. Derivation and
    corrupt-credential errors propagate.
    """
    user = await store.get_by_username(username)
    if user is None:
        await burn_verification(password)
        log.debug("Authentication: no such user %s", username_for_log(username))
        return None
    if not await verify_password(password, user.password):
        log.debug("Authentication: password mismatch for user id=%s", user.id)
        return None
    return user


async def change_password(store: UserStore, user: User, current: str, new: str) -> bool:
    """Replace the user's credential if current matches. Returns False on mismatch."""
    if not await verify_password(current, user.password):
        return False
    await store.update_password(user, await hash_password(new))
    log.info("Password changed for user id=%s", user.id)
    return True
