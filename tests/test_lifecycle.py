import asyncio

import pytest

from conftest import reset_database
from servesoft.database import async_session_maker, engine, init_db
from servesoft.lifecycle import (
    ORDER_TRANSITIONS,
    RESERVATION_TRANSITIONS,
    TABLE_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    TransitionError,
    allowed_order_targets,
    can_transition,
    can_transition_order,
    transition_order,
    transition_table,
)
from servesoft.models import (
    Order,
    OrderStatus,
    OrderType,
    ReservationStatus,
    Restaurant,
    Table,
    TableState,
)


@pytest.mark.parametrize("order_type", list(OrderType))
def test_kitchen_flow_is_shared_by_every_order_type(order_type):
    assert can_transition_order(order_type, OrderStatus.RECEIVED, OrderStatus.IN_PREP)
    assert can_transition_order(order_type, OrderStatus.IN_PREP, OrderStatus.READY)
    assert can_transition_order(order_type, OrderStatus.RECEIVED, OrderStatus.CANCELLED)
    assert not can_transition_order(order_type, OrderStatus.READY, OrderStatus.CANCELLED)
    assert not can_transition_order(order_type, OrderStatus.RECEIVED, OrderStatus.READY)


@pytest.mark.parametrize("order_type", list(OrderType))
def test_terminal_statuses_have_no_way_out(order_type):
    for status in TERMINAL_ORDER_STATUSES:
        assert allowed_order_targets(order_type, status) == frozenset()


def test_ready_order_targets_depend_on_order_type():
    assert allowed_order_targets(OrderType.TABLE, OrderStatus.READY) == {OrderStatus.COMPLETED}
    assert allowed_order_targets(OrderType.PREORDER, OrderStatus.READY) == {
        OrderStatus.PICKED_UP,
        OrderStatus.COMPLETED,
    }
    assert allowed_order_targets(OrderType.DELIVERY, OrderStatus.READY) == {
        OrderStatus.PICKED_UP,
        OrderStatus.OUT_FOR_DELIVERY,
    }


def test_only_deliveries_can_be_delivered_or_fail():
    for order_type in (OrderType.TABLE, OrderType.PREORDER):
        targets = set().union(*ORDER_TRANSITIONS[order_type].values())
        assert OrderStatus.DELIVERED not in targets
        assert OrderStatus.FAILED not in targets
        assert OrderStatus.OUT_FOR_DELIVERY not in targets

    assert can_transition_order(
        OrderType.DELIVERY, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.FAILED
    )


def test_table_cycle():
    assert can_transition(TABLE_TRANSITIONS, TableState.FREE, TableState.HELD)
    assert can_transition(TABLE_TRANSITIONS, TableState.HELD, TableState.SEATED)
    assert can_transition(TABLE_TRANSITIONS, TableState.SEATED, TableState.CLEANING)
    assert can_transition(TABLE_TRANSITIONS, TableState.CLEANING, TableState.FREE)
    assert not can_transition(TABLE_TRANSITIONS, TableState.CLEANING, TableState.SEATED)
    assert not can_transition(TABLE_TRANSITIONS, TableState.FREE, TableState.CLEANING)


def test_reservation_cannot_skip_confirmation():
    assert not can_transition(
        RESERVATION_TRANSITIONS, ReservationStatus.PENDING, ReservationStatus.SEATED
    )
    assert not can_transition(
        RESERVATION_TRANSITIONS, ReservationStatus.COMPLETED, ReservationStatus.PENDING
    )


def test_transition_error_messages():
    illegal = TransitionError("Order", 7, OrderStatus.COMPLETED, OrderStatus.IN_PREP)
    assert str(illegal) == "Cannot move Order #7 from COMPLETED to IN_PREP"
    assert not illegal.stale

    stale = TransitionError("Table", 3, TableState.FREE, TableState.SEATED, stale=True)
    assert stale.stale
    assert "changed while moving from FREE to SEATED" in str(stale)


# =============================================================================
# COMPARE-AND-SET WRITER
# =============================================================================

@pytest.fixture
def database():
    reset_database()
    yield
    reset_database()


async def seed_order() -> tuple[int, int]:
    await init_db()
    async with async_session_maker() as session:
        restaurant = Restaurant(
            name="Le Wouri", phone="677445566", address="Akwa", town_city="Douala"
        )
        session.add(restaurant)
        await session.flush()

        table = Table(restaurant_id=restaurant.id, table_number="A1", capacity=2)
        order = Order(
            order_code="ORD-RACE0001",
            restaurant_id=restaurant.id,
            order_type=OrderType.PREORDER,
            status=OrderStatus.RECEIVED,
            subtotal=1000.0,
            total_amount=1000.0,
        )
        session.add_all([table, order])
        await session.commit()
        return order.id, table.id


def test_losing_a_race_raises_stale_transition_error(database):
    async def scenario():
        order_id, _ = await seed_order()

        async with async_session_maker() as first, async_session_maker() as second:
            stale = await first.get(Order, order_id)
            fresh = await second.get(Order, order_id)

            await transition_order(second, fresh, OrderStatus.IN_PREP)
            await second.commit()

            with pytest.raises(TransitionError) as exc_info:
                await transition_order(first, stale, OrderStatus.CANCELLED, "changed my mind")
            await first.rollback()

        async with async_session_maker() as check:
            stored = await check.get(Order, order_id)
        await engine.dispose()
        return exc_info.value, stored.status, stored.cancellation_reason

    error, status, reason = asyncio.run(scenario())

    assert error.stale
    assert status == OrderStatus.IN_PREP
    assert reason is None


def test_transition_writes_status_and_timestamps(database):
    async def scenario():
        order_id, table_id = await seed_order()

        async with async_session_maker() as session:
            order = await session.get(Order, order_id)
            table = await session.get(Table, table_id)

            previous = await transition_order(
                session, order, OrderStatus.CANCELLED, cancellation_reason="kitchen closed"
            )
            await transition_table(session, table, TableState.SEATED)
            await session.commit()

            with pytest.raises(TransitionError):
                await transition_table(session, table, TableState.HELD)

        async with async_session_maker() as check:
            stored_order = await check.get(Order, order_id)
            stored_table = await check.get(Table, table_id)
        await engine.dispose()
        return previous, stored_order, stored_table

    previous, order, table = asyncio.run(scenario())

    assert previous == OrderStatus.RECEIVED
    assert order.status == OrderStatus.CANCELLED
    assert order.cancellation_reason == "kitchen closed"
    assert order.completed_at is not None
    assert table.state == TableState.SEATED
