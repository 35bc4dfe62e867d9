import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["COOKIE_SECURE"] = "false"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import itertools  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from shopwise.database import Base, SessionLocal, engine  # noqa: E402
from shopwise.main import app  # noqa: E402
from shopwise.models import Product, User  # noqa: E402
from shopwise.security import create_token, hash_password  # noqa: E402

PASSWORD = "secret123"

SHIPPING_ADDRESS = {
    "firstName": "Jane",
    "lastName": "Doe",
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
}

PAYMENT_METHOD = {"type": "credit_card", "last4": "4242", "brand": "visa"}

_sequence = itertools.count(1)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


# =====================================================
# FACTORIES
# =====================================================

@pytest.fixture
def make_user(db):
    def _make(email=None, role="user", password=PASSWORD, **fields):
        n = next(_sequence)
        user = User(
            first_name=fields.pop("first_name", "Jane"),
            last_name=fields.pop("last_name", f"Doe{n}"),
            email=email or f"user{n}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=fields.pop("is_active", True),
            reward_points=fields.pop("reward_points", 0),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(**fields):
        n = next(_sequence)
        values = {
            "name": f"Product {n}",
            "description": "A product used in tests.",
            "price": 40.0,
            "category": "Electronics",
            "subcategory": "Audio",
            "brand": "Acme",
            "sku": f"SKU-{n:04d}",
            "stock": 10,
            "images": [{"url": f"https://img.example.com/{n}.jpg", "alt": "", "isPrimary": True}],
        }
        values.update(fields)
        product = Product(**values)
        product.slug = f"{Product.slugify(product.name)}-{n}"
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, user.role)}"}


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", first_name="Ada")


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def checkout(client):
    """Add (product, quantity) pairs to the cart and place an order."""
    def _checkout(headers, *lines, discount=None, **order_fields):
        for product, quantity in lines:
            response = client.post(
                "/api/cart/add",
                json={"productId": str(product.id), "quantity": quantity},
                headers=headers,
            )
            assert response.status_code == 200, response.json()

        if discount:
            response = client.post(
                "/api/cart/apply-discount",
                json={"discountCode": discount},
                headers=headers,
            )
            assert response.status_code == 200, response.json()

        body = {
            "shippingAddress": SHIPPING_ADDRESS,
            "paymentMethod": PAYMENT_METHOD,
            **order_fields,
        }
        return client.post("/api/orders", json=body, headers=headers)

    return _checkout
