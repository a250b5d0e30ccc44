from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.core.database import get_db
from storefront.core.errors import register_exception_handlers
from storefront.deps import get_current_user, require_admin
from storefront.routers.users import router as users_router
from storefront.services import customer_stats
from storefront.services import orders as order_service
from storefront.services.users import register_user
from tests.fixtures_data import ADMIN_USER, ORDER_PAYLOAD, SIGNUP_PAYLOAD

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _order(status="pending", total=100.0, amount=None, days_ago=1):
    return SimpleNamespace(
        status=status,
        total_amount=total,
        amount=amount,
        order_date=NOW - timedelta(days=days_ago),
    )


def test_stats_aggregate_revenue_and_statuses():
    orders = [
        _order(status="completed", total=120.5),
        _order(status="pending", total=79.5),
        _order(status="cancelled", total=None, amount=50.0, days_ago=40),
    ]

    stats = customer_stats.user_order_stats(orders, NOW)

    assert stats == {
        "total_orders": 3,
        "total_revenue": 250.0,
        "completed_orders": 1,
        "pending_orders": 1,
        "is_active": True,
        "average_order_value": 83.33,
        "reward_points": 2500,
    }


def test_stats_inactive_after_thirty_days():
    stats = customer_stats.user_order_stats([_order(days_ago=31)], NOW)

    assert stats["is_active"] is False


def test_stats_for_no_orders():
    stats = customer_stats.user_order_stats([], NOW)

    assert stats["total_orders"] == 0
    assert stats["average_order_value"] == 0.0
    assert stats["reward_points"] == 0
    assert stats["is_active"] is False


def test_reward_points_are_floored():
    stats = customer_stats.user_order_stats([_order(total=10.19)], NOW)

    assert stats["reward_points"] == 101


def test_orders_for_user_falls_back_to_email(db):
    user = register_user(db, **SIGNUP_PAYLOAD)
    order_service.create_order(db, ORDER_PAYLOAD, now=NOW)

    orders = customer_stats.orders_for_user(db, user)

    assert [order.order_number for order in orders] == ["ORD-1001"]


def test_orders_linked_by_id_take_precedence(db):
    user = register_user(db, **SIGNUP_PAYLOAD)
    order_service.create_order(db, ORDER_PAYLOAD, now=NOW)
    order_service.create_order(db, {**ORDER_PAYLOAD, "order_number": "ORD-2"}, user_id=user.id, now=NOW)

    orders = customer_stats.orders_for_user(db, user)

    assert [order.order_number for order in orders] == ["ORD-2"]


def test_stats_for_all_users_in_one_pass(db):
    maria = register_user(db, **SIGNUP_PAYLOAD)
    joao = register_user(db, name="Joao Souza", email="joao@example.com", password="secret123")
    order_service.create_order(db, ORDER_PAYLOAD, now=NOW)

    stats = customer_stats.stats_for_all_users(db, [maria, joao], NOW)

    assert stats[maria.id]["total_orders"] == 1
    assert stats[maria.id]["total_revenue"] == 375.0
    assert stats[joao.id]["total_orders"] == 0


def _build_client(db, current_user) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(users_router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[require_admin] = lambda: SimpleNamespace(**ADMIN_USER)
    return TestClient(app)


def test_user_stats_route_for_self(db):
    user = register_user(db, **SIGNUP_PAYLOAD)
    order_service.create_order(db, ORDER_PAYLOAD)
    client = _build_client(db, user)

    response = client.get(f"/api/users/{user.id}/stats")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "maria@example.com"
    assert data["stats"]["total_orders"] == 1
    assert data["stats"]["is_active"] is True


def test_customer_cannot_read_other_users_orders(db):
    user = register_user(db, **SIGNUP_PAYLOAD)
    client = _build_client(db, user)

    response = client.get("/api/users/email/someone@example.com/orders")

    assert response.status_code == 403
    assert response.json()["success"] is False


def test_admin_stats_lists_every_user(db):
    register_user(db, **SIGNUP_PAYLOAD)
    register_user(db, name="Joao Souza", email="joao@example.com", password="secret123")
    order_service.create_order(db, ORDER_PAYLOAD)
    client = _build_client(db, SimpleNamespace(**ADMIN_USER))

    response = client.get("/api/users/stats")

    body = response.json()
    assert response.status_code == 200
    assert body["count"] == 2
    by_email = {item["email"]: item["stats"] for item in body["data"]}
    assert by_email["maria@example.com"]["total_orders"] == 1
    assert by_email["joao@example.com"]["total_orders"] == 0
