from datetime import date, timedelta

import pytest


@pytest.fixture
def book(client, customer, restaurant):
    def _book(days_ahead=1, **overrides):
        payload = {
            "restaurant_id": restaurant["id"],
            "reservation_date": (date.today() + timedelta(days=days_ahead)).isoformat(),
            "reservation_time": "19:30:00",
            "party_size": 4,
            **overrides,
        }
        return client.post("/api/reservations", json=payload, headers=customer["headers"])

    return _book


def set_status(client, manager, reservation_id, status, **extra):
    return client.put(
        f"/api/reservations/{reservation_id}/status",
        json={"status": status, **extra},
        headers=manager["headers"],
    )


def test_create_reservation(book, customer):
    response = book()

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["customer_id"] == customer["id"]
    assert body["customer_name"] == "Awa Ndiaye"
    assert body["customer_phone"] == "677000000"
    assert body["reservation_time"] == "19:30:00"


def test_reservation_validation(book):
    assert book(days_ahead=-1).status_code == 400
    assert book(party_size=0).status_code == 422
    assert book(restaurant_id=99999).status_code == 404


def test_today_is_not_in_the_past(book):
    assert book(days_ahead=0).status_code == 201


def test_inactive_restaurant_takes_no_reservations(client, admin, restaurant, book):
    client.put(f"/api/restaurants/{restaurant['id']}/toggle-active", headers=admin["headers"])
    assert book().status_code == 400


def test_customer_lists_own_reservations_latest_first(client, customer, register, book):
    near = book(days_ahead=1).json()
    far = book(days_ahead=7).json()

    response = client.get("/api/reservations/mine", headers=customer["headers"])
    assert [r["id"] for r in response.json()] == [far["id"], near["id"]]

    stranger = register(name="Autre")
    assert client.get("/api/reservations/mine", headers=stranger["headers"]).json() == []


def test_manager_lists_upcoming_first(client, manager, book):
    late = book(days_ahead=1, reservation_time="21:00:00").json()
    early = book(days_ahead=1, reservation_time="12:00:00").json()
    next_week = book(days_ahead=7).json()

    response = client.get("/api/reservations", headers=manager["headers"])

    assert [r["id"] for r in response.json()] == [early["id"], late["id"], next_week["id"]]


def test_reservation_lifecycle_seats_the_table(client, manager, table, book):
    reservation = book().json()

    response = set_status(client, manager, reservation["id"], "CONFIRMED")
    assert response.status_code == 200

    response = set_status(client, manager, reservation["id"], "SEATED", table_id=table["id"])
    assert response.status_code == 200
    assert response.json()["table_id"] == table["id"]

    tables = client.get("/api/tables", headers=manager["headers"]).json()
    assert tables[0]["state"] == "SEATED"

    assert set_status(client, manager, reservation["id"], "COMPLETED").status_code == 200


def test_reservation_cannot_skip_confirmation(client, manager, book):
    reservation = book().json()

    response = set_status(client, manager, reservation["id"], "SEATED")

    assert response.status_code == 409


def test_seating_at_an_occupied_table_changes_nothing(client, manager, table, book):
    first = book().json()
    second = book().json()
    for reservation in (first, second):
        set_status(client, manager, reservation["id"], "CONFIRMED")

    set_status(client, manager, first["id"], "SEATED", table_id=table["id"])
    response = set_status(client, manager, second["id"], "SEATED", table_id=table["id"])

    assert response.status_code == 409
    stored = client.get("/api/reservations", headers=manager["headers"]).json()
    assert {r["id"]: r["status"] for r in stored}[second["id"]] == "CONFIRMED"


def test_seating_needs_a_table_of_this_restaurant(client, manager, book):
    reservation = book().json()
    set_status(client, manager, reservation["id"], "CONFIRMED")

    response = set_status(client, manager, reservation["id"], "SEATED", table_id=99999)
    assert response.status_code == 400


def test_managers_only_see_their_restaurant(client, book, make_restaurant, make_manager):
    reservation = book().json()
    rival = make_manager(make_restaurant(name="Rival")["id"])

    assert client.get("/api/reservations", headers=rival["headers"]).json() == []
    assert set_status(client, rival, reservation["id"], "CONFIRMED").status_code == 404
