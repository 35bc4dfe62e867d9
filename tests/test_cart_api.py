import uuid
from datetime import timedelta

from shopwise.models import Cart, utcnow


def _add(client, headers, product, quantity=1, path="/api/cart/add", **extra):
    return client.post(
        path,
        json={"productId": str(product.id), "quantity": quantity, **extra},
        headers=headers,
    )


def test_empty_cart(client, user_headers):
    response = client.get("/api/cart", headers=user_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["items"] == []
    assert data["total"] == 0


def test_cart_requires_login(client):
    assert client.get("/api/cart").status_code == 401


def test_add_item_computes_totals(client, make_product, user_headers):
    product = make_product(price=40)

    response = _add(client, user_headers, product, 2)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["itemCount"] == 2
    assert data["subtotal"] == 80
    assert data["tax"] == 6.8
    assert data["shipping"] == 0
    assert data["total"] == 86.8
    item = data["items"][0]
    assert item["itemPrice"] == 40
    assert item["productSnapshot"]["name"] == product.name
    assert item["productSnapshot"]["sku"] == product.sku


def test_post_cart_root_also_adds(client, make_product, user_headers):
    product = make_product(price=20)

    response = _add(client, user_headers, product, path="/api/cart")

    data = response.json()["data"]
    assert data["subtotal"] == 20
    assert data["shipping"] == 5.99
    assert data["tax"] == 1.7
    assert data["total"] == 27.69


def test_adding_same_product_merges_lines(client, make_product, user_headers):
    product = make_product()

    _add(client, user_headers, product, 1)
    data = _add(client, user_headers, product, 2).json()["data"]

    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 3


def test_variants_price_and_split_lines(client, make_product, user_headers):
    product = make_product(
        price=20,
        variants=[{"name": "Size", "options": [{"value": "M", "price": 0}, {"value": "XL", "price": 3}]}],
    )

    _add(client, user_headers, product, 1, selectedVariants=[{"name": "Size", "value": "M"}])
    data = _add(client, user_headers, product, 1, selectedVariants=[{"name": "Size", "value": "XL"}]).json()["data"]

    assert sorted(i["itemPrice"] for i in data["items"]) == [20, 23]
    assert data["subtotal"] == 43


def test_unknown_variant_rejected(client, make_product, user_headers):
    product = make_product(variants=[{"name": "Size", "options": [{"value": "M", "price": 0}]}])

    response = _add(client, user_headers, product, 1, selectedVariants=[{"name": "Size", "value": "XXL"}])

    assert response.status_code == 400


def test_add_insufficient_stock(client, make_product, user_headers):
    product = make_product(stock=3)

    _add(client, user_headers, product, 2)
    response = _add(client, user_headers, product, 2)

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock available"


def test_add_inactive_or_missing_product(client, make_product, user_headers):
    inactive = make_product(is_active=False)

    assert _add(client, user_headers, inactive).status_code == 404
    response = client.post(
        "/api/cart/add",
        json={"productId": str(uuid.uuid4()), "quantity": 1},
        headers=user_headers,
    )
    assert response.status_code == 404


def test_add_rejects_zero_quantity(client, make_product, user_headers):
    product = make_product()
    assert _add(client, user_headers, product, 0).status_code == 400


def test_update_quantity_recomputes(client, make_product, user_headers):
    product = make_product(price=10)
    item_id = _add(client, user_headers, product, 1).json()["data"]["items"][0]["id"]

    response = client.put(f"/api/cart/update/{item_id}", json={"quantity": 4}, headers=user_headers)

    data = response.json()["data"]
    assert data["items"][0]["quantity"] == 4
    assert data["subtotal"] == 40
    assert data["shipping"] == 0


def test_update_to_zero_removes_line(client, make_product, user_headers):
    product = make_product()
    item_id = _add(client, user_headers, product).json()["data"]["items"][0]["id"]

    data = client.put(f"/api/cart/update/{item_id}", json={"quantity": 0}, headers=user_headers).json()["data"]

    assert data["items"] == []
    assert data["total"] == 0


def test_update_beyond_stock(client, make_product, user_headers):
    product = make_product(stock=2)
    item_id = _add(client, user_headers, product).json()["data"]["items"][0]["id"]

    response = client.put(f"/api/cart/update/{item_id}", json={"quantity": 5}, headers=user_headers)
    assert response.status_code == 400


def test_update_unknown_item(client, make_product, user_headers):
    _add(client, user_headers, make_product())

    response = client.put(f"/api/cart/update/{uuid.uuid4()}", json={"quantity": 1}, headers=user_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Item not found in cart"


def test_update_without_cart(client, user_headers):
    response = client.put(f"/api/cart/update/{uuid.uuid4()}", json={"quantity": 1}, headers=user_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Cart not found"


def test_remove_item(client, make_product, user_headers):
    first = make_product(price=10)
    second = make_product(price=30)
    _add(client, user_headers, first)
    items = _add(client, user_headers, second).json()["data"]["items"]
    first_id = next(i["id"] for i in items if i["product"]["id"] == str(first.id))

    data = client.delete(f"/api/cart/remove/{first_id}", headers=user_headers).json()["data"]

    assert [i["product"]["id"] for i in data["items"]] == [str(second.id)]
    assert data["subtotal"] == 30


def test_remove_unknown_item(client, make_product, user_headers):
    _add(client, user_headers, make_product())
    response = client.delete(f"/api/cart/remove/{uuid.uuid4()}", headers=user_headers)
    assert response.status_code == 404


def test_clear_cart(client, make_product, user_headers):
    _add(client, user_headers, make_product())
    client.post("/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers)

    data = client.delete("/api/cart/clear", headers=user_headers).json()["data"]

    assert data["items"] == []
    assert data["discounts"] == []
    assert data["total"] == 0


# =====================================================
# DISCOUNTS
# =====================================================

def test_apply_percentage_discount(client, make_product, user_headers):
    _add(client, user_headers, make_product(price=40), 2)

    response = client.post("/api/cart/apply-discount", json={"discountCode": "save10"}, headers=user_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["discountAmount"] == 8
    assert data["tax"] == 6.12
    assert data["shipping"] == 0
    assert data["total"] == 78.12
    assert [d["code"] for d in data["discounts"]] == ["SAVE10"]


def test_apply_fixed_discount(client, make_product, user_headers):
    _add(client, user_headers, make_product(price=40), 2)

    data = client.post(
        "/api/cart/apply-discount", json={"discountCode": "WELCOME20"}, headers=user_headers
    ).json()["data"]

    assert data["total"] == 65.10


def test_duplicate_discount_rejected(client, make_product, user_headers):
    _add(client, user_headers, make_product())
    client.post("/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers)

    response = client.post("/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Discount code already applied"


def test_unknown_discount_rejected(client, make_product, user_headers):
    _add(client, user_headers, make_product())

    response = client.post("/api/cart/apply-discount", json={"discountCode": "FREE100"}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid discount code"


def test_discount_without_cart(client, user_headers):
    response = client.post("/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers)
    assert response.status_code == 404


def test_remove_discount(client, make_product, user_headers):
    _add(client, user_headers, make_product(price=40), 2)
    client.post("/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers)

    data = client.delete("/api/cart/remove-discount/SAVE10", headers=user_headers).json()["data"]

    assert data["discounts"] == []
    assert data["total"] == 86.8


def test_remove_unapplied_discount_is_noop(client, make_product, user_headers):
    _add(client, user_headers, make_product(price=40), 2)
    before = client.post(
        "/api/cart/apply-discount", json={"discountCode": "SAVE10"}, headers=user_headers
    ).json()["data"]

    response = client.delete("/api/cart/remove-discount/WELCOME20", headers=user_headers)

    assert response.status_code == 200
    after = response.json()["data"]
    assert after["discounts"] == before["discounts"]
    assert after["total"] == before["total"]


# =====================================================
# STALE CARTS
# =====================================================

def test_get_drops_deactivated_products(client, make_product, user_headers, db):
    keep = make_product(price=10)
    gone = make_product(price=50)
    _add(client, user_headers, keep)
    _add(client, user_headers, gone)

    gone.is_active = False
    db.commit()

    data = client.get("/api/cart", headers=user_headers).json()["data"]

    assert [i["product"]["id"] for i in data["items"]] == [str(keep.id)]
    assert data["subtotal"] == 10


def test_expired_cart_is_emptied(client, make_product, user, user_headers, db):
    _add(client, user_headers, make_product())

    cart = db.query(Cart).filter(Cart.user_id == user.id).one()
    cart.expires_at = utcnow() - timedelta(days=1)
    db.commit()

    data = client.get("/api/cart", headers=user_headers).json()["data"]

    assert data["items"] == []
    assert data["total"] == 0


def test_mutation_refreshes_expiry(client, make_product, user, user_headers, db):
    _add(client, user_headers, make_product())

    cart = db.query(Cart).filter(Cart.user_id == user.id).one()
    assert cart.expires_at > utcnow() + timedelta(days=29)


# =====================================================
# VARIANT LINES SHARE STOCK
# =====================================================

SIZES = [{"name": "Size", "options": [{"value": "M", "price": 0}, {"value": "XL", "price": 3}]}]


def _add_size(client, headers, product, size, quantity):
    return _add(client, headers, product, quantity, selectedVariants=[{"name": "Size", "value": size}])


def test_add_counts_other_variant_lines(client, make_product, user_headers):
    product = make_product(stock=5, variants=SIZES)
    _add_size(client, user_headers, product, "M", 3)

    response = _add_size(client, user_headers, product, "XL", 3)

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock available"


def test_update_counts_other_variant_lines(client, make_product, user_headers):
    product = make_product(stock=5, variants=SIZES)
    _add_size(client, user_headers, product, "M", 3)
    items = _add_size(client, user_headers, product, "XL", 2).json()["data"]["items"]
    medium_id = next(i["id"] for i in items if i["selectedVariants"][0]["value"] == "M")

    response = client.put(f"/api/cart/update/{medium_id}", json={"quantity": 4}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock available"

    data = client.get("/api/cart", headers=user_headers).json()["data"]
    assert sorted(i["quantity"] for i in data["items"]) == [2, 3]


def test_update_within_shared_stock(client, make_product, user_headers):
    product = make_product(stock=5, variants=SIZES)
    _add_size(client, user_headers, product, "M", 3)
    items = _add_size(client, user_headers, product, "XL", 1).json()["data"]["items"]
    xl_id = next(i["id"] for i in items if i["selectedVariants"][0]["value"] == "XL")

    response = client.put(f"/api/cart/update/{xl_id}", json={"quantity": 2}, headers=user_headers)

    assert response.status_code == 200
    assert response.json()["data"]["itemCount"] == 5
