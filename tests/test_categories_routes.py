from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.core.database import get_db
from storefront.core.errors import register_exception_handlers
from storefront.deps import require_admin
from storefront.routers.categories import router as categories_router
from storefront.services import products as product_service
from tests.fixtures_data import ADMIN_USER, PRODUCT_PAYLOAD


def _build_client(db) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(categories_router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[require_admin] = lambda: SimpleNamespace(**ADMIN_USER)
    return TestClient(app)


def _create(client, **payload) -> dict:
    response = client.post("/api/categories", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_category_derives_slug(db):
    client = _build_client(db)

    data = _create(client, name="Home Office", order=3)

    assert data["slug"] == "home-office"
    assert data["order"] == 3
    assert data["parent_id"] is None


def test_create_rejects_unknown_or_malformed_parent(db):
    client = _build_client(db)

    unknown = client.post("/api/categories", json={"name": "Phones", "parent_id": 999})
    malformed = client.post("/api/categories", json={"name": "Phones", "parent_id": "abc"})

    assert unknown.status_code == 400
    assert unknown.json()["message"] == "Invalid parent category ID"
    assert malformed.status_code == 400
    assert malformed.json()["message"] == "Invalid parent category ID"


def test_create_treats_loose_empty_parent_as_root(db):
    client = _build_client(db)

    data = _create(client, name="Garden", parent_id="null")

    assert data["parent_id"] is None


def test_duplicate_name_is_rejected_case_insensitively(db):
    client = _build_client(db)
    _create(client, name="Electronics")

    response = client.post("/api/categories", json={"name": "electronics"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Category with this name already exists"}


def test_list_nested_and_by_parent(db):
    client = _build_client(db)
    root = _create(client, name="Electronics")
    child = _create(client, name="Phones", parent_id=root["id"])
    _create(client, name="Books")

    nested = client.get("/api/categories", params={"nested": "true"}).json()["data"]
    top_level = client.get("/api/categories", params={"parent": "root"}).json()["data"]
    children = client.get("/api/categories", params={"parent": str(root["id"])}).json()["data"]

    assert [node["name"] for node in nested] == ["Books", "Electronics"]
    assert [node["id"] for node in nested[1]["children"]] == [child["id"]]
    assert sorted(item["name"] for item in top_level) == ["Books", "Electronics"]
    assert [item["id"] for item in children] == [child["id"]]


def test_get_category_includes_relatives_and_product_count(db):
    client = _build_client(db)
    root = _create(client, name="Electronics")
    child = _create(client, name="Phones", parent_id=root["id"])
    product_service.create_product(db, {**PRODUCT_PAYLOAD, "category_id": child["id"]})

    parent_view = client.get(f"/api/categories/{root['id']}").json()["data"]
    child_view = client.get(f"/api/categories/{child['id']}").json()["data"]

    assert parent_view["children"] == [{"id": child["id"], "name": "Phones", "slug": "phones"}]
    assert parent_view["parent"] is None
    assert parent_view["product_count"] == 0
    assert child_view["parent"]["id"] == root["id"]
    assert child_view["product_count"] == 1


def test_delete_blocked_by_subcategory(db):
    client = _build_client(db)
    root = _create(client, name="Electronics")
    _create(client, name="Phones", parent_id=root["id"])

    response = client.delete(f"/api/categories/{root['id']}")

    assert response.status_code == 400
    assert response.json()["message"] == (
        "Cannot delete category with subcategories. Delete or move subcategories first."
    )
    assert client.get(f"/api/categories/{root['id']}").status_code == 200


def test_delete_blocked_by_products(db):
    client = _build_client(db)
    category = _create(client, name="Audio")
    product_service.create_product(db, {**PRODUCT_PAYLOAD, "category_id": category["id"]})

    response = client.delete(f"/api/categories/{category['id']}")

    assert response.status_code == 400
    assert response.json()["message"] == (
        "Cannot delete category with 1 product(s). Move or delete the products first."
    )


def test_delete_empty_category(db):
    client = _build_client(db)
    category = _create(client, name="Seasonal")

    response = client.delete(f"/api/categories/{category['id']}")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Category deleted successfully"}
    assert client.get(f"/api/categories/{category['id']}").status_code == 404


def test_update_refuses_self_parent_and_cycles(db):
    client = _build_client(db)
    root = _create(client, name="Electronics")
    child = _create(client, name="Phones", parent_id=root["id"])
    grandchild = _create(client, name="Cases", parent_id=child["id"])

    own = client.put(f"/api/categories/{root['id']}", json={"parent_id": root["id"]})
    cycle = client.put(f"/api/categories/{root['id']}", json={"parent_id": grandchild["id"]})

    assert own.status_code == 400
    assert own.json()["message"] == "Category cannot be its own parent"
    assert cycle.status_code == 400
    assert cycle.json()["message"] == "Category cannot be moved under one of its subcategories"
    assert client.get(f"/api/categories/{root['id']}").json()["data"]["parent_id"] is None


def test_update_can_move_category_to_root(db):
    client = _build_client(db)
    root = _create(client, name="Electronics")
    child = _create(client, name="Phones", parent_id=root["id"])

    response = client.put(f"/api/categories/{child['id']}", json={"parent_id": "", "name": "Mobile Phones"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["parent_id"] is None
    assert data["slug"] == "mobile-phones"


def test_unknown_category_is_404(db):
    client = _build_client(db)

    response = client.get("/api/categories/4242")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Category not found"}
