"""
Table Endpoints (manager)

Floor plan of the manager's restaurant and table state changes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_manager_restaurant_id
from servesoft.database import get_db
from servesoft.lifecycle import transition_table
from servesoft.models import Table, TableState
from servesoft.schemas import ErrorResponse, TableCreate, TableResponse, TableStateUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["Tables"])


async def get_own_table(db: AsyncSession, table_id: int, restaurant_id: int) -> Table:
    table = await db.get(Table, table_id)
    if table is None or table.restaurant_id != restaurant_id:
        raise HTTPException(status_code=404, detail=f"Table #{table_id} not found")
    return table


@router.get("", response_model=list[TableResponse])
async def list_tables(
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> list[TableResponse]:
    result = await db.execute(
        select(Table)
        .where(Table.restaurant_id == restaurant_id)
        .order_by(Table.table_number)
    )
    return [TableResponse.model_validate(t) for t in result.scalars().all()]


@router.post(
    "",
    response_model=TableResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}},
)
async def create_table(
    data: TableCreate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    """New tables start FREE with a QR code derived from their number."""
    table_number = data.table_number.strip()

    existing = await db.execute(
        select(Table.id).where(
            Table.restaurant_id == restaurant_id,
            Table.table_number == table_number,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail=f"Table {table_number} already exists")

    table = Table(
        restaurant_id=restaurant_id,
        table_number=table_number,
        capacity=data.capacity,
        state=TableState.FREE,
        qr_code=f"QR-{restaurant_id}-{table_number}",
        position_x=data.position_x,
        position_y=data.position_y,
    )
    db.add(table)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=f"Table {table_number} already exists")

    await db.refresh(table)
    logger.info(f"Table {table_number} added to restaurant #{restaurant_id}")
    return TableResponse.model_validate(table)


@router.put(
    "/{table_id}/state",
    response_model=TableResponse,
    responses={409: {"model": ErrorResponse}},
)
async def update_table_state(
    table_id: int,
    data: TableStateUpdate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    table = await get_own_table(db, table_id, restaurant_id)
    await transition_table(db, table, data.state)
    await db.commit()

    await db.refresh(table)
    return TableResponse.model_validate(table)
