import asyncio

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from conftest import reset_database
from servesoft.auth import hash_password
from servesoft.database import async_session_maker, engine, init_db
from servesoft.models import (
    AssignmentStatus,
    DeliveryAssignment,
    EmploymentRecord,
    EmploymentStatus,
    Order,
    OrderStatus,
    OrderType,
    Restaurant,
    StaffRole,
    User,
    UserRole,
)
from servesoft.routers.delivery import assign_driver
from servesoft.schemas import AssignmentCreate


def assign(client, manager, order_id, driver_id):
    return client.post(
        "/api/delivery/assign",
        json={"order_id": order_id, "driver_id": driver_id},
        headers=manager["headers"],
    )


def advance(client, driver, assignment_id, status):
    return client.put(
        f"/api/delivery/assignments/{assignment_id}/status",
        json={"status": status},
        headers=driver["headers"],
    )


def order_status(client, manager, order_id):
    return client.get(f"/api/orders/{order_id}", headers=manager["headers"]).json()["status"]


@pytest.fixture
def ready_delivery(client, manager, place_order):
    order_id = place_order("DELIVERY").json()["order_id"]
    for status in ("IN_PREP", "READY"):
        client.put(
            f"/api/orders/{order_id}/status", json={"status": status}, headers=manager["headers"]
        )
    return order_id


def test_assign_driver(client, manager, driver, ready_delivery):
    response = assign(client, manager, ready_delivery, driver["id"])

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["driver_id"] == driver["id"]
    assert body["order"]["delivery_address"] == "Bonapriso, Douala"
    assert body["order"]["status"] == "READY"


def test_one_live_assignment_per_order(client, manager, make_driver, ready_delivery):
    first, second = make_driver(), make_driver()
    assign(client, manager, ready_delivery, first["id"])

    response = assign(client, manager, ready_delivery, second["id"])
    assert response.status_code == 409


def test_declined_assignment_frees_the_order(client, manager, make_driver, ready_delivery):
    first, second = make_driver(), make_driver()
    assignment = assign(client, manager, ready_delivery, first["id"]).json()

    assert advance(client, first, assignment["id"], "DECLINED").status_code == 200
    assert assign(client, manager, ready_delivery, second["id"]).status_code == 201


def test_driver_must_be_available(client, manager, make_driver, ready_delivery):
    off_shift = make_driver(available=False)

    response = assign(client, manager, ready_delivery, off_shift["id"])
    assert response.status_code == 400


def test_driver_must_work_here_as_driver(client, manager, ready_delivery):
    cook = client.post(
        "/api/staff",
        json={"email": "cook@example.com", "full_name": "Cook", "password": "x", "staff_role": "KITCHEN"},
        headers=manager["headers"],
    ).json()
    client.put(
        "/api/users/me/availability",
        json={"is_available": True},
        headers={"X-User-ID": str(cook["user_id"])},
    )

    response = assign(client, manager, ready_delivery, cook["user_id"])
    assert response.status_code == 400

    assert assign(client, manager, ready_delivery, 99999).status_code == 404


def test_only_delivery_orders_get_drivers(client, manager, driver, table, place_order):
    order_id = place_order("TABLE", table_id=table["id"]).json()["order_id"]

    response = assign(client, manager, order_id, driver["id"])
    assert response.status_code == 400


def test_finished_orders_get_no_drivers(client, manager, driver, place_order):
    order_id = place_order("DELIVERY").json()["order_id"]
    client.put(
        f"/api/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=manager["headers"]
    )

    assert assign(client, manager, order_id, driver["id"]).status_code == 400


def test_delivery_progress_is_mirrored_on_the_order(client, manager, driver, ready_delivery):
    assignment = assign(client, manager, ready_delivery, driver["id"]).json()

    response = advance(client, driver, assignment["id"], "ACCEPTED")
    assert response.json()["accepted_at"] is not None
    assert order_status(client, manager, ready_delivery) == "READY"

    response = advance(client, driver, assignment["id"], "PICKED_UP")
    assert response.json()["picked_up_at"] is not None
    assert response.json()["order"]["status"] == "PICKED_UP"

    advance(client, driver, assignment["id"], "OUT_FOR_DELIVERY")
    assert order_status(client, manager, ready_delivery) == "OUT_FOR_DELIVERY"

    response = advance(client, driver, assignment["id"], "DELIVERED")
    assert response.status_code == 200
    assert response.json()["delivered_at"] is not None
    assert response.json()["order"]["status"] == "DELIVERED"


def test_failed_delivery_fails_the_order(client, manager, driver, ready_delivery):
    assignment = assign(client, manager, ready_delivery, driver["id"]).json()
    for status in ("ACCEPTED", "PICKED_UP", "OUT_FOR_DELIVERY", "FAILED"):
        assert advance(client, driver, assignment["id"], status).status_code == 200

    assert order_status(client, manager, ready_delivery) == "FAILED"


def test_order_not_ready_stays_put(client, manager, driver, place_order):
    order_id = place_order("DELIVERY").json()["order_id"]
    assignment = assign(client, manager, order_id, driver["id"]).json()

    advance(client, driver, assignment["id"], "ACCEPTED")
    response = advance(client, driver, assignment["id"], "PICKED_UP")

    assert response.status_code == 200
    assert response.json()["status"] == "PICKED_UP"
    assert response.json()["order"]["status"] == "RECEIVED"


def test_illegal_assignment_moves_conflict(client, manager, driver, ready_delivery):
    assignment = assign(client, manager, ready_delivery, driver["id"]).json()

    response = advance(client, driver, assignment["id"], "DELIVERED")

    assert response.status_code == 409
    assert order_status(client, manager, ready_delivery) == "READY"


def test_drivers_see_only_their_assignments(client, manager, make_driver, ready_delivery):
    mine, other = make_driver(), make_driver()
    assignment = assign(client, manager, ready_delivery, mine["id"]).json()

    listed = client.get("/api/delivery/assignments", headers=mine["headers"]).json()
    assert [a["id"] for a in listed] == [assignment["id"]]
    assert client.get("/api/delivery/assignments", headers=other["headers"]).json() == []

    assert advance(client, other, assignment["id"], "ACCEPTED").status_code == 404


def test_driver_can_view_assigned_order(client, manager, driver, ready_delivery):
    assign(client, manager, ready_delivery, driver["id"])

    response = client.get(f"/api/orders/{ready_delivery}", headers=driver["headers"])
    assert response.status_code == 200


def test_cancelled_order_stops_the_driver(client, manager, driver, place_order):
    order_id = place_order("DELIVERY").json()["order_id"]
    assignment = assign(client, manager, order_id, driver["id"]).json()
    advance(client, driver, assignment["id"], "ACCEPTED")

    client.put(
        f"/api/orders/{order_id}/status",
        json={"status": "CANCELLED", "reason": "customer called"},
        headers=manager["headers"],
    )
    response = advance(client, driver, assignment["id"], "PICKED_UP")

    assert response.status_code == 409
    assert "CANCELLED" in response.json()["detail"]
    listed = client.get("/api/delivery/assignments", headers=driver["headers"]).json()
    assert listed[0]["status"] == "ACCEPTED"


# =============================================================================
# CONCURRENT ASSIGNMENT
# =============================================================================

@pytest.fixture
def database():
    reset_database()
    yield
    reset_database()


async def seed_delivery() -> tuple[int, int, list[int]]:
    await init_db()
    async with async_session_maker() as session:
        restaurant = Restaurant(
            name="Le Wouri", phone="677445566", address="Akwa", town_city="Douala"
        )
        session.add(restaurant)
        await session.flush()

        drivers = []
        for n in range(2):
            user = User(
                email=f"rider{n}@example.com",
                full_name=f"Rider {n}",
                role=UserRole.STAFF,
                password_hash=hash_password("ride"),
                is_available=True,
            )
            session.add(user)
            await session.flush()
            session.add(EmploymentRecord(
                user_id=user.id,
                restaurant_id=restaurant.id,
                staff_role=StaffRole.DRIVER,
                status=EmploymentStatus.ACTIVE,
            ))
            drivers.append(user.id)

        order = Order(
            order_code="ORD-RACE0002",
            restaurant_id=restaurant.id,
            order_type=OrderType.DELIVERY,
            status=OrderStatus.READY,
            delivery_address="Bonapriso",
            subtotal=3500.0,
            delivery_fee=1500.0,
            total_amount=5000.0,
        )
        session.add(order)
        await session.commit()
        return restaurant.id, order.id, drivers


def test_racing_managers_leave_one_live_assignment(database):
    async def scenario():
        restaurant_id, order_id, drivers = await seed_delivery()

        async def attempt(driver_id):
            async with async_session_maker() as session:
                data = AssignmentCreate(order_id=order_id, driver_id=driver_id)
                return await assign_driver(data, restaurant_id=restaurant_id, db=session)

        results = await asyncio.gather(
            *(attempt(driver_id) for driver_id in drivers), return_exceptions=True
        )

        async with async_session_maker() as check:
            stored = await check.execute(
                DeliveryAssignment.__table__.select().where(
                    DeliveryAssignment.order_id == order_id
                )
            )
            rows = stored.all()
        await engine.dispose()
        return results, rows

    results, rows = asyncio.run(scenario())

    won = [r for r in results if not isinstance(r, Exception)]
    lost = [r for r in results if isinstance(r, Exception)]
    assert len(won) == 1 and len(lost) == 1
    assert isinstance(lost[0], HTTPException) and lost[0].status_code == 409
    assert len(rows) == 1


def test_second_live_assignment_is_refused_by_the_database(database):
    async def scenario():
        _, order_id, drivers = await seed_delivery()

        async with async_session_maker() as session:
            session.add(DeliveryAssignment(order_id=order_id, driver_id=drivers[0]))
            await session.commit()

            session.add(DeliveryAssignment(order_id=order_id, driver_id=drivers[1]))
            with pytest.raises(IntegrityError):
                await session.commit()
            await session.rollback()

            # a declined assignment no longer counts
            session.add(DeliveryAssignment(
                order_id=order_id,
                driver_id=drivers[1],
                status=AssignmentStatus.DECLINED,
            ))
            await session.commit()
        await engine.dispose()

    asyncio.run(scenario())
