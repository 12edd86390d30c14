"""
Shared fixtures.

The app is pointed at a throwaway SQLite file before anything from
``servesoft`` is imported, so settings, engine and Celery all pick up
the test configuration.
"""

import os
import tempfile
import uuid
from pathlib import Path

TEST_DIR = Path(tempfile.mkdtemp(prefix="servesoft-tests-"))
DB_PATH = TEST_DIR / "servesoft.db"

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = "admin@servesoft.test"
os.environ["BOOTSTRAP_ADMIN_PASSWORD"] = "admin-pass"
os.environ["EXPORT_ORDERS"] = "false"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["DATA_DIRECTORY"] = str(TEST_DIR / "data")
os.environ["SERVICE_FEE_RATE"] = "0"
os.environ["DEFAULT_DELIVERY_FEE"] = "1500"
os.environ["DEFAULT_PRE_ORDER_LEAD_TIME_MINUTES"] = "30"

import pytest
from fastapi.testclient import TestClient

from servesoft.main import app


def auth(user_id: int) -> dict[str, str]:
    return {"X-User-ID": str(user_id)}


def reset_database() -> None:
    if DB_PATH.exists():
        DB_PATH.unlink()


@pytest.fixture
def client():
    """Fresh database per test; the lifespan creates tables and the admin."""
    reset_database()
    with TestClient(app) as test_client:
        yield test_client
    reset_database()


@pytest.fixture
def admin(client):
    response = client.post(
        "/api/auth/login",
        json={"email": "admin@servesoft.test", "password": "admin-pass"},
    )
    assert response.status_code == 200
    user = response.json()["user"]
    return {"id": user["id"], "headers": auth(user["id"]), "profile": user}


@pytest.fixture
def register(client):
    """Register a customer; returns id, headers and profile."""

    def _register(name="Awa Ndiaye", email=None, password="secret", phone="677000000"):
        email = email or f"{uuid.uuid4().hex[:10]}@example.com"
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, "phone": phone},
        )
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        return {"id": user["id"], "headers": auth(user["id"]), "profile": user}

    return _register


@pytest.fixture
def customer(register):
    return register()


@pytest.fixture
def make_restaurant(client, admin):
    def _make(name="Chez Mama", **overrides):
        payload = {
            "name": name,
            "description": "Cuisine camerounaise",
            "phone": "677112233",
            "address": "Rue de la Joie",
            "town_city": "Douala",
            **overrides,
        }
        response = client.post("/api/restaurants", json=payload, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def restaurant(make_restaurant):
    return make_restaurant()


@pytest.fixture
def make_manager(client, admin, register):
    def _make(restaurant_id):
        user = register(name="Marc Manager")
        response = client.post(
            f"/api/restaurants/{restaurant_id}/managers/{user['id']}",
            headers=admin["headers"],
        )
        assert response.status_code == 201, response.text
        return user

    return _make


@pytest.fixture
def manager(make_manager, restaurant):
    return make_manager(restaurant["id"])


@pytest.fixture
def menu(client, manager):
    """Two available items: a dish at 3500 and a drink at 500."""
    items = []
    for payload in (
        {"name": "Ndolé", "category": "Plats", "price": 3500},
        {"name": "Jus de foléré", "category": "Boissons", "price": 500},
    ):
        response = client.post("/api/menu", json=payload, headers=manager["headers"])
        assert response.status_code == 201, response.text
        items.append(response.json())
    return items


@pytest.fixture
def table(client, manager):
    response = client.post(
        "/api/tables",
        json={"table_number": "T1", "capacity": 4},
        headers=manager["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def make_driver(client, manager):
    def _make(available=True):
        email = f"driver-{uuid.uuid4().hex[:8]}@example.com"
        response = client.post(
            "/api/staff",
            json={
                "email": email,
                "full_name": "Paul Driver",
                "phone": "699000000",
                "password": "drive",
                "staff_role": "DRIVER",
            },
            headers=manager["headers"],
        )
        assert response.status_code == 201, response.text
        driver = {"id": response.json()["user_id"], "headers": auth(response.json()["user_id"])}
        if available:
            availability = client.put(
                "/api/users/me/availability",
                json={"is_available": True},
                headers=driver["headers"],
            )
            assert availability.status_code == 200
        return driver

    return _make


@pytest.fixture
def driver(make_driver):
    return make_driver()


@pytest.fixture
def place_order(client, customer, restaurant, menu):
    """Place an order for ``customer``; defaults to a delivery of 2 dishes and 1 drink."""

    def _place(order_type="DELIVERY", lines=None, who=None, **details):
        payload = {
            "restaurant_id": restaurant["id"],
            "order_type": order_type,
            "items": lines if lines is not None else [
                {"menu_item_id": menu[0]["id"], "quantity": 2},
                {"menu_item_id": menu[1]["id"], "quantity": 1},
            ],
            **details,
        }
        if order_type == "DELIVERY":
            payload.setdefault("delivery_address", "Bonapriso, Douala")
        return client.post("/api/orders", json=payload, headers=(who or customer)["headers"])

    return _place
