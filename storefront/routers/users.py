from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, list_envelope
from storefront.deps import get_current_user, log_access_denied, require_admin
from storefront.models.user import User
from storefront.routers.auth import user_to_dict
from storefront.routers.orders import order_to_dict
from storefront.services import customer_stats
from storefront.services import users as user_service

router = APIRouter(prefix="/api/users", tags=["users"])


def _ensure_self_or_admin(request: Request, user: User, *, user_id: int | None = None, email: str | None = None) -> None:
    if user.role == "admin":
        return
    if user_id is not None and user.id == user_id:
        return
    if email is not None and (user.email or "").lower() == email.strip().lower():
        return
    log_access_denied(user=user, request=request)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view another user's data")


@router.get("/stats")
def all_user_stats(
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    stats = customer_stats.stats_for_all_users(db, users)
    return list_envelope([{**user_to_dict(user), "stats": stats[user.id]} for user in users])


@router.get("/email/{email}/orders")
def orders_by_email(
    email: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _ensure_self_or_admin(request, user, email=email)
    orders = customer_stats.orders_by_email(db, email)
    return list_envelope([order_to_dict(order) for order in orders])


@router.get("/{user_id}/stats")
def user_stats(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _ensure_self_or_admin(request, user, user_id=user_id)
    target = user_service.get_user(db, user_id)
    orders = customer_stats.orders_for_user(db, target)
    return envelope({**user_to_dict(target), "stats": customer_stats.user_order_stats(orders)})


@router.get("/{user_id}/orders")
def user_orders(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _ensure_self_or_admin(request, user, user_id=user_id)
    target = user_service.get_user(db, user_id)
    orders = customer_stats.orders_for_user(db, target)
    return list_envelope([order_to_dict(order) for order in orders])
