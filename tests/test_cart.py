import pytest


@pytest.fixture
def other_item(client, make_restaurant, make_manager):
    """An item on a second restaurant's menu."""
    other = make_restaurant(name="Chez Tonton")
    rival = make_manager(other["id"])
    response = client.post(
        "/api/menu", json={"name": "Poulet DG", "price": 6000}, headers=rival["headers"]
    )
    assert response.status_code == 201
    return response.json()


def add(client, customer, menu_item_id, quantity=1, **extra):
    return client.post(
        "/api/cart/items",
        json={"menu_item_id": menu_item_id, "quantity": quantity, **extra},
        headers=customer["headers"],
    )


def test_add_items(client, customer, restaurant, menu):
    dish, drink = menu
    add(client, customer, dish["id"], 2)
    response = add(client, customer, drink["id"], 3)

    assert response.status_code == 201
    cart = response.json()
    assert cart["restaurant_id"] == restaurant["id"]
    assert [(i["name"], i["quantity"], i["line_total"]) for i in cart["items"]] == [
        ("Ndolé", 2, 7000),
        ("Jus de foléré", 3, 1500),
    ]
    assert cart["total_amount"] == 8500


def test_adding_same_item_increments_quantity(client, customer, menu):
    add(client, customer, menu[0]["id"], 1)
    response = add(client, customer, menu[0]["id"], 2)

    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 3


def test_cart_holds_one_restaurant(client, customer, menu, other_item):
    add(client, customer, menu[0]["id"])

    response = add(client, customer, other_item["id"])
    assert response.status_code == 409

    response = add(client, customer, other_item["id"], replace=True)
    assert response.status_code == 201
    cart = response.json()
    assert cart["restaurant_id"] == other_item["restaurant_id"]
    assert [i["menu_item_id"] for i in cart["items"]] == [other_item["id"]]


def test_unavailable_items_cannot_be_added(client, customer, manager, menu):
    client.put(f"/api/menu/{menu[0]['id']}/toggle-availability", headers=manager["headers"])

    response = add(client, customer, menu[0]["id"])
    assert response.status_code == 400

    assert add(client, customer, 99999).status_code == 404


def test_update_quantity_and_remove(client, customer, menu):
    cart = add(client, customer, menu[0]["id"], 1).json()
    item_id = cart["items"][0]["id"]

    response = client.put(
        f"/api/cart/items/{item_id}", json={"quantity": 5}, headers=customer["headers"]
    )
    assert response.json()["items"][0]["quantity"] == 5

    response = client.put(
        f"/api/cart/items/{item_id}", json={"quantity": 0}, headers=customer["headers"]
    )
    assert response.status_code == 200
    assert response.json()["items"] == []
    assert response.json()["restaurant_id"] is None


def test_remove_item_and_clear(client, customer, menu):
    add(client, customer, menu[0]["id"])
    cart = add(client, customer, menu[1]["id"]).json()

    response = client.delete(
        f"/api/cart/items/{cart['items'][0]['id']}", headers=customer["headers"]
    )
    assert [i["menu_item_id"] for i in response.json()["items"]] == [menu[1]["id"]]

    response = client.delete("/api/cart", headers=customer["headers"])
    assert response.json()["items"] == []

    response = client.delete("/api/cart/items/99999", headers=customer["headers"])
    assert response.status_code == 404


def test_checkout_empty_cart(client, customer):
    response = client.post(
        "/api/cart/checkout",
        json={"order_type": "DELIVERY", "delivery_address": "Akwa"},
        headers=customer["headers"],
    )
    assert response.status_code == 400


def test_checkout_places_order_and_empties_cart(client, customer, menu):
    add(client, customer, menu[0]["id"], 2)
    add(client, customer, menu[1]["id"], 1)

    response = client.post(
        "/api/cart/checkout",
        json={"order_type": "DELIVERY", "delivery_address": "Bonapriso"},
        headers=customer["headers"],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["total_amount"] == 7500 + 1500
    assert body["currency"] == "XAF"

    order = client.get(f"/api/orders/{body['order_id']}", headers=customer["headers"]).json()
    assert order["subtotal"] == 7500
    assert len(order["items"]) == 2

    cart = client.get("/api/cart", headers=customer["headers"]).json()
    assert cart["items"] == []
    assert cart["restaurant_id"] is None


def test_staff_have_no_cart(client, manager):
    assert client.get("/api/cart", headers=manager["headers"]).status_code == 403
