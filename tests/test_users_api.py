import uuid

from conftest import auth_headers

HOME = {"street": "1 Main St", "city": "Springfield", "state": "IL", "zipCode": "62701"}
WORK = {"type": "work", "street": "9 Office Park", "city": "Chicago", "state": "IL", "zipCode": "60601"}


def test_get_profile(client, user, user_headers):
    data = client.get("/api/users/profile", headers=user_headers).json()["data"]

    assert data["email"] == user.email
    assert data["addresses"] == []
    assert data["rewardPoints"] == 0


def test_update_profile(client, user_headers):
    client.put("/api/users/profile", json={"preferences": {"newsletter": True}}, headers=user_headers)

    response = client.put(
        "/api/users/profile",
        json={"firstName": "Janet", "avatar": "https://img.example.com/me.png", "preferences": {"theme": "dark"}},
        headers=user_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["firstName"] == "Janet"
    assert data["avatar"] == "https://img.example.com/me.png"
    assert data["preferences"] == {"newsletter": True, "theme": "dark"}


def test_update_profile_rejects_blank_name(client, user_headers):
    response = client.put("/api/users/profile", json={"firstName": ""}, headers=user_headers)
    assert response.status_code == 400


# =====================================================
# ADDRESSES
# =====================================================

def _defaults(addresses):
    return [a["street"] for a in addresses if a["isDefault"]]


def test_first_address_becomes_default(client, user_headers):
    response = client.post("/api/users/addresses", json=HOME, headers=user_headers)

    assert response.status_code == 201
    addresses = response.json()["data"]
    assert addresses[0]["country"] == "United States"
    assert _defaults(addresses) == ["1 Main St"]


def test_new_default_address_replaces_old(client, user_headers):
    client.post("/api/users/addresses", json=HOME, headers=user_headers)
    addresses = client.post(
        "/api/users/addresses", json={**WORK, "isDefault": True}, headers=user_headers
    ).json()["data"]

    assert len(addresses) == 2
    assert _defaults(addresses) == ["9 Office Park"]


def test_non_default_address_keeps_existing_default(client, user_headers):
    client.post("/api/users/addresses", json=HOME, headers=user_headers)
    addresses = client.post("/api/users/addresses", json=WORK, headers=user_headers).json()["data"]

    assert _defaults(addresses) == ["1 Main St"]


def test_update_address_to_default(client, user_headers):
    client.post("/api/users/addresses", json=HOME, headers=user_headers)
    addresses = client.post("/api/users/addresses", json=WORK, headers=user_headers).json()["data"]
    work_id = next(a["id"] for a in addresses if a["type"] == "work")

    addresses = client.put(
        f"/api/users/addresses/{work_id}",
        json={"isDefault": True, "city": "Evanston"},
        headers=user_headers,
    ).json()["data"]

    assert _defaults(addresses) == ["9 Office Park"]
    assert next(a for a in addresses if a["id"] == work_id)["city"] == "Evanston"


def test_deleting_default_promotes_another(client, user_headers):
    addresses = client.post("/api/users/addresses", json=HOME, headers=user_headers).json()["data"]
    home_id = addresses[0]["id"]
    client.post("/api/users/addresses", json=WORK, headers=user_headers)

    addresses = client.delete(f"/api/users/addresses/{home_id}", headers=user_headers).json()["data"]

    assert [a["street"] for a in addresses] == ["9 Office Park"]
    assert _defaults(addresses) == ["9 Office Park"]


def test_unknown_address(client, user_headers):
    response = client.delete(f"/api/users/addresses/{uuid.uuid4()}", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Address not found"


def test_cannot_touch_someone_elses_address(client, make_user, user_headers):
    other_headers = auth_headers(make_user())
    other_id = client.post("/api/users/addresses", json=HOME, headers=other_headers).json()["data"][0]["id"]

    response = client.put(f"/api/users/addresses/{other_id}", json={"city": "Nowhere"}, headers=user_headers)
    assert response.status_code == 404


# =====================================================
# ORDER HISTORY / REWARD POINTS
# =====================================================

def test_order_history_stats(client, checkout, make_product, user_headers):
    product = make_product(price=40, stock=20)
    checkout(user_headers, (product, 2))
    checkout(user_headers, (product, 1))

    data = client.get("/api/users/order-history", headers=user_headers).json()["data"]

    assert len(data["orders"]) == 2
    assert "statusHistory" not in data["orders"][0]
    assert data["stats"]["totalOrders"] == 2
    # 86.80 + 43.40
    assert data["stats"]["totalSpent"] == 130.2
    assert data["stats"]["averageOrderValue"] == 65.1
    assert data["pagination"]["totalOrders"] == 2


def test_order_history_empty(client, user_headers):
    data = client.get("/api/users/order-history", headers=user_headers).json()["data"]

    assert data["orders"] == []
    assert data["stats"] == {"totalOrders": 0, "totalSpent": 0, "averageOrderValue": 0}


def test_reward_points_summary(client, checkout, make_product, user_headers):
    checkout(user_headers, (make_product(price=40), 2))

    data = client.get("/api/users/reward-points", headers=user_headers).json()["data"]

    assert data["currentBalance"] == 86
    assert [e["rewardPointsEarned"] for e in data["recentEarnings"]] == [86]
    assert data["pointsValue"] == "Each point = $1.00"


# =====================================================
# BUY AGAIN
# =====================================================

def test_buy_again_ranks_by_frequency(client, checkout, make_product, user, user_headers):
    often = make_product(name="Coffee", price=12, stock=50, category="Grocery")
    once = make_product(name="Mug", price=30, stock=50, category="Home & Garden")

    checkout(user_headers, (often, 1), (once, 1))
    checkout(user_headers, (often, 2))

    data = client.get(f"/api/users/{user.id}/buy-again", headers=user_headers).json()["data"]

    names = [p["product"]["name"] for p in data["buyAgainProducts"]]
    assert names == ["Coffee", "Mug"]
    stats = data["buyAgainProducts"][0]["orderStats"]
    assert stats["orderCount"] == 2
    assert stats["totalQuantity"] == 3
    assert stats["avgPrice"] == 12
    assert data["totalFound"] == 2
    assert data["recentCategories"][0] == "Grocery"


def test_buy_again_skips_inactive_products(client, checkout, make_product, user, user_headers, db):
    gone = make_product(name="Discontinued")
    checkout(user_headers, (gone, 1))

    gone.is_active = False
    db.commit()

    data = client.get(f"/api/users/{user.id}/buy-again", headers=user_headers).json()["data"]
    assert data["buyAgainProducts"] == []


def test_buy_again_respects_limit(client, checkout, make_product, user, user_headers):
    products = [make_product(price=10) for _ in range(3)]
    checkout(user_headers, *[(p, 1) for p in products])

    data = client.get(
        f"/api/users/{user.id}/buy-again", params={"limit": 2}, headers=user_headers
    ).json()["data"]
    assert data["totalFound"] == 2


def test_buy_again_for_other_user_is_forbidden(client, make_user, user_headers, admin_headers):
    other = make_user()

    assert client.get(f"/api/users/{other.id}/buy-again", headers=user_headers).status_code == 403
    assert client.get(f"/api/users/{other.id}/buy-again", headers=admin_headers).status_code == 200


# =====================================================
# GET USER
# =====================================================

def test_get_own_user(client, user, user_headers):
    data = client.get(f"/api/users/{user.id}", headers=user_headers).json()["data"]
    assert data["id"] == str(user.id)


def test_get_user_access_rules(client, user, make_user, user_headers, admin_headers):
    other = make_user()

    forbidden = client.get(f"/api/users/{other.id}", headers=user_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["message"] == "Not authorized to access this resource"

    assert client.get(f"/api/users/{other.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/users/{uuid.uuid4()}", headers=admin_headers).status_code == 404
