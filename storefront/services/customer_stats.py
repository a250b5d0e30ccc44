from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.core.config import ACTIVE_CUSTOMER_DAYS
from storefront.models.order import Order
from storefront.models.user import User
from storefront.services.temporal import as_utc, utcnow


def _order_value(order: Order) -> float:
    return float(order.total_amount or order.amount or 0)


def orders_by_email(db: Session, email: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(func.lower(Order.customer_email) == (email or "").strip().lower())
        .order_by(Order.order_date.desc(), Order.id.desc())
        .all()
    )


def orders_for_user(db: Session, user: User) -> list[Order]:
    """Orders linked to the account, or the ones placed with its email as a guest."""
    orders = (
        db.query(Order)
        .filter(Order.user_id == user.id)
        .order_by(Order.order_date.desc(), Order.id.desc())
        .all()
    )
    if not orders and user.email:
        orders = orders_by_email(db, user.email)
    return orders


def user_order_stats(orders: Iterable[Order], now: datetime | None = None) -> dict:
    orders = list(orders)
    cutoff = as_utc(now or utcnow()) - timedelta(days=ACTIVE_CUSTOMER_DAYS)

    total_orders = len(orders)
    total_revenue = round(sum(_order_value(order) for order in orders), 2)
    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "completed_orders": sum(1 for order in orders if order.status == "completed"),
        "pending_orders": sum(1 for order in orders if order.status == "pending"),
        "is_active": any(order.order_date and as_utc(order.order_date) >= cutoff for order in orders),
        "average_order_value": round(total_revenue / total_orders, 2) if total_orders else 0.0,
        "reward_points": math.floor(total_revenue * 10),
    }


def stats_for_all_users(db: Session, users: list[User], now: datetime | None = None) -> dict[int, dict]:
    """Stats keyed by user id, computed from a single pass over the orders table."""
    by_user: dict[int, list[Order]] = defaultdict(list)
    by_email: dict[str, list[Order]] = defaultdict(list)
    for order in db.query(Order).all():
        if order.user_id is not None:
            by_user[order.user_id].append(order)
        if order.customer_email:
            by_email[order.customer_email.lower()].append(order)

    result: dict[int, dict] = {}
    for user in users:
        orders = by_user.get(user.id) or by_email.get((user.email or "").lower(), [])
        result[user.id] = user_order_stats(orders, now)
    return result
