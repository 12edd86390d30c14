"""
Lifecycle State Machines

Legal status transitions for orders, tables, reservations and delivery
assignments, and the compare-and-set writer that applies them.

A transition is written as
    UPDATE <table> SET <field> = :target WHERE id = :id AND <field> = :current
so two callers racing on the same row cannot both win: the loser gets a
409 instead of silently overwriting the other's change.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from servesoft.models import (
    AssignmentStatus,
    DeliveryAssignment,
    LIVE_ASSIGNMENT_STATUSES,
    Order,
    OrderStatus,
    OrderType,
    Reservation,
    ReservationStatus,
    Table,
    TableState,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION TABLES
# =============================================================================

_KITCHEN_FLOW = {
    OrderStatus.RECEIVED: frozenset({OrderStatus.IN_PREP, OrderStatus.CANCELLED}),
    OrderStatus.IN_PREP: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
}

ORDER_TRANSITIONS: dict[OrderType, dict[OrderStatus, frozenset]] = {
    OrderType.TABLE: {
        **_KITCHEN_FLOW,
        OrderStatus.READY: frozenset({OrderStatus.COMPLETED}),
    },
    OrderType.PREORDER: {
        **_KITCHEN_FLOW,
        OrderStatus.READY: frozenset({OrderStatus.PICKED_UP, OrderStatus.COMPLETED}),
        OrderStatus.PICKED_UP: frozenset({OrderStatus.COMPLETED}),
    },
    OrderType.DELIVERY: {
        **_KITCHEN_FLOW,
        OrderStatus.READY: frozenset({OrderStatus.PICKED_UP, OrderStatus.OUT_FOR_DELIVERY}),
        OrderStatus.PICKED_UP: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
        OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.FAILED}),
    },
}

TERMINAL_ORDER_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.FAILED,
})

TABLE_TRANSITIONS: dict[TableState, frozenset] = {
    TableState.FREE: frozenset({TableState.HELD, TableState.SEATED}),
    TableState.HELD: frozenset({TableState.SEATED, TableState.FREE}),
    TableState.SEATED: frozenset({TableState.CLEANING, TableState.FREE}),
    TableState.CLEANING: frozenset({TableState.FREE}),
}

RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.SEATED, ReservationStatus.CANCELLED}),
    ReservationStatus.SEATED: frozenset({ReservationStatus.COMPLETED}),
}

ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, frozenset] = {
    AssignmentStatus.PENDING: frozenset({AssignmentStatus.ACCEPTED, AssignmentStatus.DECLINED}),
    AssignmentStatus.ACCEPTED: frozenset({AssignmentStatus.PICKED_UP}),
    AssignmentStatus.PICKED_UP: frozenset({AssignmentStatus.OUT_FOR_DELIVERY}),
    AssignmentStatus.OUT_FOR_DELIVERY: frozenset({AssignmentStatus.DELIVERED, AssignmentStatus.FAILED}),
}

# Assignment progress mirrored onto the order
ASSIGNMENT_ORDER_STATUS: dict[AssignmentStatus, OrderStatus] = {
    AssignmentStatus.PICKED_UP: OrderStatus.PICKED_UP,
    AssignmentStatus.OUT_FOR_DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    AssignmentStatus.DELIVERED: OrderStatus.DELIVERED,
    AssignmentStatus.FAILED: OrderStatus.FAILED,
}

ASSIGNMENT_TIMESTAMPS: dict[AssignmentStatus, str] = {
    AssignmentStatus.ACCEPTED: "accepted_at",
    AssignmentStatus.PICKED_UP: "picked_up_at",
    AssignmentStatus.DELIVERED: "delivered_at",
}


# =============================================================================
# ERRORS
# =============================================================================

class TransitionError(Exception):
    """Raised when a status change is illegal or lost a concurrent race."""

    def __init__(self, entity: str, entity_id: Any, current: Enum, target: Enum, stale: bool = False):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        self.stale = stale
        if stale:
            message = (
                f"{entity} #{entity_id} changed while moving from "
                f"{current.value} to {target.value}; reload and retry"
            )
        else:
            message = f"Cannot move {entity} #{entity_id} from {current.value} to {target.value}"
        super().__init__(message)


# =============================================================================
# QUERIES
# =============================================================================

def allowed_order_targets(order_type: OrderType, current: OrderStatus) -> frozenset:
    return ORDER_TRANSITIONS[order_type].get(current, frozenset())


def can_transition_order(order_type: OrderType, current: OrderStatus, target: OrderStatus) -> bool:
    return target in allowed_order_targets(order_type, current)


def can_transition(table: Mapping[Enum, frozenset], current: Enum, target: Enum) -> bool:
    return target in table.get(current, frozenset())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# WRITER
# =============================================================================

async def apply_transition(
    db: AsyncSession,
    row: Any,
    target: Enum,
    allowed: Mapping[Enum, frozenset],
    field: str = "status",
    values: Optional[dict[str, Any]] = None,
) -> Enum:
    """
    Move ``row`` to ``target`` if the transition table allows it.

    The write is conditional on the row still holding the status we read.
    Extra column ``values`` are written in the same statement. The caller
    owns the transaction and must commit.

    Returns:
        The previous status.

    Raises:
        TransitionError: illegal transition, or the row changed underneath us
    """
    model = type(row)
    entity = model.__name__
    current = getattr(row, field)

    if target not in allowed.get(current, frozenset()):
        raise TransitionError(entity, row.id, current, target)

    column = getattr(model, field)
    changes = {field: target, **(values or {})}
    stmt = (
        update(model)
        .where(model.id == row.id, column == current)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)

    if result.rowcount != 1:
        logger.warning(f"{entity} #{row.id}: lost update race {current.value} -> {target.value}")
        raise TransitionError(entity, row.id, current, target, stale=True)

    for key, value in changes.items():
        set_committed_value(row, key, value)

    logger.info(f"{entity} #{row.id}: {current.value} -> {target.value}")
    return current


async def transition_order(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    cancellation_reason: Optional[str] = None,
) -> OrderStatus:
    """Apply an order status change for the order's type."""
    values: dict[str, Any] = {}
    if target in TERMINAL_ORDER_STATUSES:
        values["completed_at"] = utcnow()
    if target == OrderStatus.CANCELLED and cancellation_reason:
        values["cancellation_reason"] = cancellation_reason

    return await apply_transition(
        db, order, target, ORDER_TRANSITIONS[order.order_type], values=values
    )


async def transition_table(db: AsyncSession, table: Table, target: TableState) -> TableState:
    return await apply_transition(db, table, target, TABLE_TRANSITIONS, field="state")


async def transition_reservation(
    db: AsyncSession,
    reservation: Reservation,
    target: ReservationStatus,
    table_id: Optional[int] = None,
) -> ReservationStatus:
    values = {"table_id": table_id} if table_id is not None else None
    return await apply_transition(
        db, reservation, target, RESERVATION_TRANSITIONS, values=values
    )


async def transition_assignment(
    db: AsyncSession,
    assignment: DeliveryAssignment,
    target: AssignmentStatus,
) -> AssignmentStatus:
    """Apply an assignment status change, stamping the matching timestamp."""
    values = {}
    stamp = ASSIGNMENT_TIMESTAMPS.get(target)
    if stamp:
        values[stamp] = utcnow()

    return await apply_transition(
        db, assignment, target, ASSIGNMENT_TRANSITIONS, values=values
    )
