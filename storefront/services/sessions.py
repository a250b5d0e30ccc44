"""Server-side login sessions.

The browser only holds a signed, opaque session id. The id maps to a row in
``user_sessions`` so a session can be revoked before it expires.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from storefront.core.config import (
    SESSION_COOKIE_DOMAIN,
    SESSION_COOKIE_HTTPONLY,
    SESSION_COOKIE_SAMESITE,
    SESSION_COOKIE_SECURE,
    SESSION_MAX_AGE_SECONDS,
    SESSION_SECRET,
)
from storefront.models.user import User, UserSession
from storefront.services.temporal import as_utc, utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE = "storefront_session"
SESSION_SALT = "storefront-session"


def _serializer() -> URLSafeTimedSerializer:
    if not SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET is not configured.")
    return URLSafeTimedSerializer(SESSION_SECRET, salt=SESSION_SALT)


def create_session(
    db: Session,
    user: User,
    *,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> str:
    now = as_utc(now or utcnow())
    session_id = secrets.token_urlsafe(32)
    db.add(
        UserSession(
            id=session_id,
            user_id=user.id,
            created_at=now,
            expires_at=now + timedelta(seconds=SESSION_MAX_AGE_SECONDS),
            user_agent=(user_agent or "")[:255] or None,
        )
    )
    db.commit()
    logger.info("session created user_id=%s", user.id)
    return _serializer().dumps({"sid": session_id})


def decode_session_token(token: str) -> Optional[str]:
    try:
        payload = _serializer().loads(token, max_age=SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    session_id = payload.get("sid")
    return session_id if isinstance(session_id, str) else None


def resolve_session(db: Session, token: str | None, now: datetime | None = None) -> Optional[User]:
    if not token:
        return None
    session_id = decode_session_token(token)
    if not session_id:
        return None

    record = (
        db.query(UserSession)
        .filter(UserSession.id == session_id, UserSession.revoked_at.is_(None))
        .first()
    )
    if record is None or as_utc(record.expires_at) <= as_utc(now or utcnow()):
        return None

    return db.query(User).filter(User.id == record.user_id, User.is_active.is_(True)).first()


def revoke_session(db: Session, token: str | None) -> bool:
    session_id = decode_session_token(token) if token else None
    if not session_id:
        return False
    record = db.query(UserSession).filter(UserSession.id == session_id).first()
    if record is None or record.revoked_at is not None:
        return False
    record.revoked_at = utcnow()
    db.commit()
    logger.info("session revoked user_id=%s", record.user_id)
    return True


def revoke_user_sessions(db: Session, user_id: int) -> int:
    count = (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
        .update({UserSession.revoked_at: utcnow()}, synchronize_session=False)
    )
    db.commit()
    return count


def build_session_cookie_options(request: Request | None = None) -> dict[str, Any]:
    secure = SESSION_COOKIE_SECURE
    samesite = SESSION_COOKIE_SAMESITE

    host = ""
    if request is not None:
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").lower()
        host = host.split(",")[0].strip().split(":")[0]

    # Public hosts never get an insecure cookie
    if host not in {"", "localhost", "127.0.0.1"}:
        secure = True

    # Browsers reject SameSite=None without Secure
    if samesite == "none" and not secure:
        samesite = "lax"

    return {
        "domain": SESSION_COOKIE_DOMAIN,
        "httponly": SESSION_COOKIE_HTTPONLY,
        "samesite": samesite,
        "path": "/",
        "secure": secure,
    }


def set_session_cookie(response: Response, token: str, request: Request | None = None) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=SESSION_MAX_AGE_SECONDS,
        **build_session_cookie_options(request),
    )


def clear_session_cookie(response: Response, request: Request | None = None) -> None:
    response.delete_cookie(key=SESSION_COOKIE, **build_session_cookie_options(request))
