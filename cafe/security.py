"""Session-cookie staff authentication."""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from passlib.context import CryptContext
from sqlmodel import Session

from . import crud
from .models import User

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({"admin", "staff"})
SESSION_USER_KEY = "user"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def authenticate(session: Session, username: str, password: str) -> User | None:
    user = crud.get_user_by_username(session, username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def login_user(request: Request, user: User) -> dict:
    data = {"id": user.id, "username": user.username, "role": user.role}
    request.session[SESSION_USER_KEY] = data
    return data


def logout_user(request: Request) -> None:
    request.session.clear()


def ensure_admin_user(session: Session, username: str, password: str | None) -> None:
    if not password or crud.get_user_by_username(session, username) is not None:
        return
    crud.create_user(session, username=username, password_hash=hash_password(password), role="admin")
    logger.info("Created bootstrap admin account %r", username)


def current_user(request: Request) -> dict:
    user = request.session.get(SESSION_USER_KEY)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_staff(user: Annotated[dict, Depends(current_user)]) -> dict:
    if user.get("role") not in STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return user


CurrentUser = Annotated[dict, Depends(current_user)]
StaffGuard = Annotated[dict, Depends(require_staff)]
