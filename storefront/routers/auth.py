from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso
from storefront.deps import get_current_user
from storefront.models.user import User
from storefront.services import users as user_service
from storefront.services.sessions import (
    SESSION_COOKIE,
    clear_session_cookie,
    create_session,
    revoke_session,
    revoke_user_sessions,
    set_session_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "phone": user.phone,
        "avatar": user.avatar,
        "is_active": user.is_active,
        "last_login": iso(user.last_login),
        "purchased_items": user.purchased_items,
        "reward_points": user.reward_points,
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
    }


def _start_session(db: Session, user: User, request: Request, response: Response) -> None:
    token = create_session(db, user, user_agent=request.headers.get("user-agent"))
    set_session_cookie(response, token, request)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    user = user_service.register_user(db, **payload.model_dump(exclude_none=True))
    _start_session(db, user, request, response)
    return envelope(user_to_dict(user), "Account created successfully")


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    user = user_service.authenticate(db, payload.email, payload.password)
    _start_session(db, user, request, response)
    logger.info("login success user_id=%s role=%s", user.id, user.role)
    return envelope(user_to_dict(user), "Login successful")


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    revoke_session(db, request.cookies.get(SESSION_COOKIE))
    clear_session_cookie(response, request)
    return envelope(message="Logged out successfully")


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return envelope(user_to_dict(user))


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user = user_service.update_profile(db, user, payload.model_dump(exclude_unset=True))
    return envelope(user_to_dict(user), "Profile updated successfully")


@router.put("/password")
def change_password(
    payload: PasswordChange,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user_service.change_password(db, user, payload.current_password, payload.new_password)
    revoke_user_sessions(db, user.id)
    _start_session(db, user, request, response)
    return envelope(message="Password changed successfully")


@router.delete("/account")
def delete_account(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user_service.delete_user(db, user)
    clear_session_cookie(response, request)
    return envelope(message="Account deleted successfully")
