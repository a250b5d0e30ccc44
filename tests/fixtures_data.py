"""Reusable datasets for backend test scenarios."""

ADMIN_USER = {
    "id": 1,
    "name": "Store Admin",
    "email": "admin@example.com",
    "role": "admin",
    "is_active": True,
}

CUSTOMER_USER = {
    "id": 2,
    "name": "Maria Silva",
    "email": "maria@example.com",
    "role": "customer",
    "is_active": True,
}

CATEGORY_FOREST = [
    {"id": 1, "name": "Electronics", "parent_id": None},
    {"id": 2, "name": "Phones", "parent_id": 1},
    {"id": 3, "name": "Orphaned", "parent_id": 99},
]

PRODUCT_PAYLOAD = {
    "name": "Wireless Headphones",
    "sku": "wh-100",
    "original_price": 200.0,
    "discount": 10,
    "stock": 5,
    "brand": "Acme",
    "description": "Over-ear, noise cancelling",
    "images": ["headphones-front.jpg", "headphones-side.jpg"],
    "badges": "bestseller, new",
}

ORDER_PAYLOAD = {
    "order_number": "ord-1001",
    "product_name": "Wireless Headphones",
    "quantity": 2,
    "customer_name": "Maria Silva",
    "customer_email": "Maria@Example.com",
    "customer_location": "Rua das Flores, 12",
    "amount": 360.0,
    "shipping_method": "shipping",
    "shipping_cost": 15.0,
    "payment_method": "card",
}

SIGNUP_PAYLOAD = {
    "name": "Maria Silva",
    "email": "maria@example.com",
    "password": "secret123",
    "phone": "(11) 99999-0000",
}
