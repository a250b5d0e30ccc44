from __future__ import annotations

import logging
import re
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.errors import AuthenticationError, NotFoundError, ValidationError
from storefront.models.order import Order
from storefront.models.user import User
from storefront.services.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from storefront.services.temporal import utcnow

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-()+.]")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: str | None) -> Optional[str]:
    if not phone:
        return None
    digits = _PHONE_SEPARATORS.sub("", phone)
    if not digits.isdigit() or not 10 <= len(digits) <= 15:
        raise ValidationError("Phone number must have 10 to 15 digits")
    return digits


def _validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if not 2 <= len(name) <= 100:
        raise ValidationError("Name must be between 2 and 100 characters")
    return name


def _validate_password(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def _ensure_unique_email(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ValidationError("User with this email already exists")


def _commit(db: Session, user: User) -> User:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("User with this email already exists") from exc
    db.refresh(user)
    return user


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = "customer",
) -> User:
    """Self-service signup. Nobody signs themselves up as an admin."""
    email = normalize_email(email)
    _ensure_unique_email(db, email)
    if role == "admin":
        logger.warning("signup requested admin role, downgraded email=%s", email)

    user = User(
        name=_validate_name(name),
        email=email,
        password_hash=hash_password(_validate_password(password)),
        phone=normalize_phone(phone),
        role="customer",
        is_active=True,
    )
    db.add(user)
    _commit(db, user)
    logger.info("user registered id=%s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact support.")
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: User, patch: dict[str, Any]) -> User:
    changes: dict[str, Any] = {}
    if patch.get("name") is not None:
        changes["name"] = _validate_name(patch["name"])
    if patch.get("email") is not None:
        email = normalize_email(patch["email"])
        _ensure_unique_email(db, email, exclude_id=user.id)
        changes["email"] = email
    if "phone" in patch:
        changes["phone"] = normalize_phone(patch["phone"])
    if "avatar" in patch:
        changes["avatar"] = patch["avatar"]
    for field in ("purchased_items", "reward_points", "is_active"):
        if patch.get(field) is not None:
            changes[field] = patch[field]

    for field, value in changes.items():
        setattr(user, field, value)
    return _commit(db, user)


def change_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    _validate_password(new_password)
    if current_password == new_password:
        raise ValidationError("New password must be different from the current password")
    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info("password changed user_id=%s", user.id)
    return user


def delete_user(db: Session, user: User) -> None:
    user_id = user.id
    # Orders are kept, detached from the account
    db.query(Order).filter(Order.user_id == user_id).update({Order.user_id: None}, synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("user deleted id=%s", user_id)


def get_user(db: Session, user_id: int, role: str | None = None) -> User:
    query = db.query(User).filter(User.id == user_id)
    if role:
        query = query.filter(User.role == role)
    user = query.first()
    if not user:
        raise NotFoundError("User not found")
    return user


def search_users(
    db: Session,
    *,
    role: str | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[User], int]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    clean_search = (search or "").strip()
    if clean_search:
        search_like = f"%{clean_search}%"
        query = query.filter(
            or_(
                User.name.ilike(search_like),
                User.email.ilike(search_like),
                User.phone.ilike(search_like),
            )
        )
    total = query.with_entities(func.count(User.id)).scalar() or 0
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return users, total


def upsert_admin_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str | None,
) -> tuple[User, bool]:
    email = normalize_email(email)
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        existing.name = _validate_name(name)
        existing.role = "admin"
        existing.is_active = True
        if password:
            existing.password_hash = hash_password(_validate_password(password))
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValidationError("Password is required to create a new admin.")

    admin = User(
        name=_validate_name(name),
        email=email,
        password_hash=hash_password(_validate_password(password)),
        role="admin",
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True
