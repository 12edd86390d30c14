"""
Menu Endpoints

Customers see a restaurant's available items; managers maintain the
menu of the restaurant they work at.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_manager_restaurant_id
from servesoft.database import get_db
from servesoft.models import MenuItem, Restaurant
from servesoft.schemas import MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Menu"])


async def get_own_menu_item(db: AsyncSession, item_id: int, restaurant_id: int) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None or item.restaurant_id != restaurant_id:
        raise HTTPException(status_code=404, detail=f"Menu item #{item_id} not found")
    return item


@router.get(
    "/api/restaurants/{restaurant_id}/menu",
    response_model=list[MenuItemResponse],
    summary="Browse Menu",
)
async def browse_menu(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    """Available items of an active restaurant."""
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None or not restaurant.is_active:
        raise HTTPException(status_code=404, detail=f"Restaurant #{restaurant_id} not found")

    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id, MenuItem.is_available.is_(True))
        .order_by(MenuItem.category, MenuItem.name)
    )
    return [MenuItemResponse.model_validate(i) for i in result.scalars().all()]


@router.get("/api/menu", response_model=list[MenuItemResponse], summary="Manage Menu")
async def list_menu(
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id)
        .order_by(MenuItem.created_at.desc(), MenuItem.id.desc())
    )
    return [MenuItemResponse.model_validate(i) for i in result.scalars().all()]


@router.post("/api/menu", response_model=MenuItemResponse, status_code=201)
async def create_menu_item(
    data: MenuItemCreate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = MenuItem(restaurant_id=restaurant_id, **data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)

    logger.info(f"Menu item #{item.id} ({item.name}) added to restaurant #{restaurant_id}")
    return MenuItemResponse.model_validate(item)


@router.put("/api/menu/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: int,
    data: MenuItemUpdate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    """Price changes never touch existing orders; they keep their snapshot."""
    item = await get_own_menu_item(db, item_id, restaurant_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(item, key, value)

    await db.commit()
    await db.refresh(item)
    return MenuItemResponse.model_validate(item)


@router.put("/api/menu/{item_id}/toggle-availability", response_model=MenuItemResponse)
async def toggle_menu_item(
    item_id: int,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await get_own_menu_item(db, item_id, restaurant_id)
    item.is_available = not item.is_available

    await db.commit()
    await db.refresh(item)
    return MenuItemResponse.model_validate(item)
