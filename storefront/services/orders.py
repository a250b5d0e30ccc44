from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import DEFAULT_DELIVERY_DAYS
from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.order import Order
from storefront.services.coupons import normalize_code, redeem_coupon
from storefront.services.inventory import (
    CANCELLED,
    release_stock,
    reserve_stock,
    should_release_on_delete,
    should_release_on_status_change,
)
from storefront.services.temporal import as_utc, start_of_day, utcnow

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "in-progress", "completed", "cancelled")
ORDER_CREATE_STATUSES = ("pending", "in-progress", "completed")
SHIPPING_METHODS = {"shipping", "pickup"}
PAYMENT_METHODS = {"card", "cash", "qr"}

_REQUIRED_FIELDS = {
    "order_number": "Order number is required",
    "product_name": "Product name is required",
    "customer_name": "Customer name is required",
    "customer_location": "Customer location is required",
}
_EDITABLE_TEXT_FIELDS = (
    "product_image",
    "customer_name",
    "customer_location",
    "order_time",
    "delivery_time",
)
_EDITABLE_AMOUNT_FIELDS = (
    "amount",
    "shipping_cost",
    "discount_percent",
    "discount_amount",
    "subtotal",
    "total_amount",
)


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def validate_delivery_date(value: datetime, now: datetime | None = None) -> datetime:
    value = as_utc(value)
    if value < start_of_day(now or utcnow()):
        raise ValidationError("Delivery date cannot be in the past")
    return value


def compute_total(subtotal: float, discount_amount: float, shipping_cost: float) -> float:
    return max(0.0, round(float(subtotal) - float(discount_amount) + float(shipping_cost), 2))


def _validate_choice(value: str, allowed, label: str) -> str:
    if value not in allowed:
        raise ValidationError(f"Invalid {label}: {value}")
    return value


def create_order(
    db: Session,
    data: dict[str, Any],
    *,
    user_id: Optional[int] = None,
    now: datetime | None = None,
) -> Order:
    """Place an order, reserving stock and redeeming the coupon in one transaction."""
    now = as_utc(now or utcnow())

    for field, message in _REQUIRED_FIELDS.items():
        if not _clean(data.get(field)):
            raise ValidationError(message)

    quantity = int(data.get("quantity") or 1)
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    shipping_method = _validate_choice(data.get("shipping_method") or "shipping", SHIPPING_METHODS, "shipping method")
    payment_method = _validate_choice(data.get("payment_method") or "card", PAYMENT_METHODS, "payment method")
    status = data.get("status") or "pending"
    if status == CANCELLED:
        raise ValidationError("Orders cannot be created as cancelled")
    _validate_choice(status, ORDER_CREATE_STATUSES, "order status")
    delivery_date = validate_delivery_date(
        data.get("delivery_date") or now + timedelta(days=DEFAULT_DELIVERY_DAYS),
        now,
    )

    order_number = _clean(data["order_number"]).upper()
    if db.query(Order.id).filter(Order.order_number == order_number).first():
        raise ValidationError("Order number already exists")

    amount = float(data.get("amount") or 0)
    subtotal = float(data["subtotal"]) if data.get("subtotal") is not None else amount
    shipping_cost = float(data.get("shipping_cost") or 0)
    coupon_code = normalize_code(data.get("coupon_code")) or None

    order = Order(
        order_number=order_number,
        user_id=user_id if user_id is not None else data.get("user_id"),
        product_id=data.get("product_id"),
        product_name=_clean(data["product_name"]),
        product_image=data.get("product_image"),
        quantity=quantity,
        customer_name=_clean(data["customer_name"]),
        customer_email=_clean(data.get("customer_email")).lower() or None,
        customer_location=_clean(data["customer_location"]),
        amount=amount,
        shipping_method=shipping_method,
        shipping_cost=shipping_cost,
        coupon_code=coupon_code,
        discount_percent=float(data.get("discount_percent") or 0),
        discount_amount=float(data.get("discount_amount") or 0),
        subtotal=subtotal,
        payment_method=payment_method,
        order_date=as_utc(data["order_date"]) if data.get("order_date") else now,
        order_time=data.get("order_time") or now.strftime("%H:%M"),
        delivery_date=delivery_date,
        delivery_time=data.get("delivery_time"),
        status=status,
    )

    try:
        if coupon_code:
            # A redeemed coupon prices the order from its own discount
            coupon = redeem_coupon(db, coupon_code, now)
            order.discount_percent = float(coupon.discount)
            order.discount_amount = round(subtotal * order.discount_percent / 100, 2)

        order.total_amount = (
            float(data["total_amount"])
            if data.get("total_amount") is not None and not coupon_code
            else compute_total(subtotal, order.discount_amount, shipping_cost)
        )

        if order.product_id is not None:
            reserve_stock(db, order.product_id, quantity)

        db.add(order)
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("Order number already exists") from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "order created id=%s order_number=%s product_id=%s quantity=%s total=%s",
        order.id,
        order.order_number,
        order.product_id,
        order.quantity,
        order.total_amount,
    )
    return order


def _cancel(db: Session, order: Order) -> bool:
    # Only the request that actually flips the status gets to release stock
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status != CANCELLED)
        .values(status=CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False
    release_stock(db, order.product_id, order.quantity)
    return True


def update_order(db: Session, order: Order, patch: dict[str, Any], now: datetime | None = None) -> Order:
    new_status = patch.get("status")
    if new_status is not None:
        _validate_choice(new_status, ORDER_STATUSES, "order status")
        if order.status == CANCELLED and new_status != CANCELLED:
            raise ValidationError("Cancelled orders cannot be reopened")

    changes: dict[str, Any] = {}
    if patch.get("delivery_date") is not None:
        changes["delivery_date"] = validate_delivery_date(patch["delivery_date"], now)
    if patch.get("shipping_method") is not None:
        changes["shipping_method"] = _validate_choice(patch["shipping_method"], SHIPPING_METHODS, "shipping method")
    if patch.get("payment_method") is not None:
        changes["payment_method"] = _validate_choice(patch["payment_method"], PAYMENT_METHODS, "payment method")
    if "customer_email" in patch:
        changes["customer_email"] = _clean(patch["customer_email"]).lower() or None
    for field in _EDITABLE_TEXT_FIELDS:
        if patch.get(field) is not None:
            changes[field] = patch[field]
    for field in _EDITABLE_AMOUNT_FIELDS:
        if patch.get(field) is not None:
            changes[field] = float(patch[field])

    previous_status = order.status
    try:
        for field, value in changes.items():
            setattr(order, field, value)
        if new_status is not None and new_status != previous_status:
            if should_release_on_status_change(previous_status, new_status):
                if _cancel(db, order):
                    logger.info("order cancelled id=%s released=%s", order.id, order.quantity)
            else:
                order.status = new_status
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    if new_status is not None and previous_status != order.status:
        logger.info("order status changed id=%s from=%s to=%s", order.id, previous_status, order.status)
    return order


def delete_order(db: Session, order: Order) -> None:
    order_id, status = order.id, order.status
    try:
        if should_release_on_delete(order.status):
            release_stock(db, order.product_id, order.quantity)
        db.delete(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("order deleted id=%s status=%s", order_id, status)


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(db: Session, *, status: str | None = None) -> list[Order]:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.order_date.desc(), Order.id.desc()).all()
