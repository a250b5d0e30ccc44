# storefront/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.request_context import set_request_context
from storefront.models.user import User
from storefront.services.sessions import SESSION_COOKIE, resolve_session

logger = logging.getLogger(__name__)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the session cookie into an active user or answer 401."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = resolve_session(db, token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or invalid")

    request.state.user_id = user.id
    set_request_context(user_id=str(user.id))
    return user


def log_access_denied(*, user: User, request: Request) -> None:
    logger.warning(
        "Access denied: user_id=%s user_role=%s endpoint=%s %s",
        getattr(user, "id", None),
        getattr(user, "role", None),
        request.method,
        request.url.path,
    )


def require_admin(
    request: Request,
    user: User = Depends(get_current_user),
) -> User:
    if (user.role or "").strip().lower() != "admin":
        log_access_denied(user=user, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[User]:
    token = request.cookies.get(SESSION_COOKIE)
    user = resolve_session(db, token) if token else None
    if user is not None:
        request.state.user_id = user.id
        set_request_context(user_id=str(user.id))
    return user
