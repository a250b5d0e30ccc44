from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.core.database import get_db
from storefront.core.errors import register_exception_handlers
from storefront.deps import require_admin
from storefront.models.order import Order
from storefront.routers.products import router as products_router
from storefront.services import categories as category_service
from storefront.services import orders as order_service
from tests.fixtures_data import ADMIN_USER, ORDER_PAYLOAD, PRODUCT_PAYLOAD


def _build_client(db) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(products_router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[require_admin] = lambda: SimpleNamespace(**ADMIN_USER)
    return TestClient(app)


def _category_id(db) -> int:
    return category_service.create_category(db, name="Audio").id


def test_create_product_derives_price_and_normalizes_fields(db):
    client = _build_client(db)

    response = client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": _category_id(db)})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["sku"] == "WH-100"
    assert data["price"] == 180.0
    assert data["badges"] == ["bestseller", "new"]
    assert data["in_stock"] is True
    assert data["category"]["name"] == "Audio"


def test_create_product_requires_images(db):
    client = _build_client(db)
    payload = {**PRODUCT_PAYLOAD, "category_id": _category_id(db), "images": []}

    response = client.post("/api/products", json=payload)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["message"] == "Validation error"


def test_create_product_rejects_unknown_category(db):
    client = _build_client(db)

    response = client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": 404})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid category ID"}


def test_duplicate_sku_is_rejected(db):
    client = _build_client(db)
    category_id = _category_id(db)
    client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": category_id})

    response = client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": category_id, "sku": "WH-100"})

    assert response.status_code == 400
    assert response.json()["message"] == "Product with this SKU already exists"


def test_list_products_paginates_and_filters(db):
    client = _build_client(db)
    category_id = _category_id(db)
    for index, price in enumerate((50.0, 120.0, 300.0)):
        client.post(
            "/api/products",
            json={
                **PRODUCT_PAYLOAD,
                "category_id": category_id,
                "sku": f"SKU-{index}",
                "name": f"Item {index}",
                "original_price": price,
                "discount": 0,
            },
        )

    first_page = client.get("/api/products", params={"limit": 2, "sort_by": "price", "sort_order": "asc"}).json()
    expensive = client.get("/api/products", params={"min_price": 100}).json()

    assert first_page["count"] == 2
    assert [item["price"] for item in first_page["data"]] == [50.0, 120.0]
    assert first_page["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNextPage": True,
        "hasPrevPage": False,
    }
    assert sorted(item["price"] for item in expensive["data"]) == [120.0, 300.0]


def test_update_stock_drives_availability_and_price(db):
    client = _build_client(db)
    created = client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": _category_id(db)}).json()["data"]

    response = client.put(f"/api/products/{created['id']}", json={"stock": 0, "discount": 50})

    data = response.json()["data"]
    assert data["stock"] == 0
    assert data["in_stock"] is False
    assert data["price"] == 100.0


def test_delete_product_keeps_orders(db):
    client = _build_client(db)
    created = client.post("/api/products", json={**PRODUCT_PAYLOAD, "category_id": _category_id(db)}).json()["data"]
    order = order_service.create_order(db, {**ORDER_PAYLOAD, "product_id": created["id"]})

    response = client.delete(f"/api/products/{created['id']}")

    assert response.status_code == 200
    db.expire_all()
    kept = db.get(Order, order.id)
    assert kept is not None
    assert kept.product_id is None
    assert kept.product_name == "Wireless Headphones"
    assert client.get(f"/api/products/{created['id']}").status_code == 404
